import logging

import requests
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from finance_app.core_db.models import Finance

from . import rules
from .contracts import sign_contract
from .exceptions import NotFoundError, UpstreamServiceError
from .integration import ServiceEndpoints, VehicleDataClient
from .permissions import IsAdminPrincipal, IsPrincipalAuthenticated
from .serializers import FinanceSerializer, FinanceStatusSerializer, SignedContractSerializer

logger = logging.getLogger(__name__)

# query param -> model field
FILTER_FIELDS = {
    'status': 'status',
    'contractStatus': 'contract_status',
    'brand': 'brand',
    'modelName': 'model_name',
    'type': 'type',
}

# vehicle API key -> model field, used to fill descriptors left blank by the client
VEHICLE_SPEC_FIELDS = {
    'brand': 'brand',
    'modelName': 'model_name',
    'modelname': 'model_name',
    'type': 'type',
}


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'size'
    max_page_size = 200


def _bearer_token(request):
    return request.auth if isinstance(request.auth, str) else None


def _validation_error(serializer):
    return Response(
        {"message": "Validation error on finance payload.",
            "errors": serializer.errors},
        status=status.HTTP_400_BAD_REQUEST
    )


# ===============================================
# COLLECTION ENDPOINTS
# ===============================================

@api_view(['GET', 'POST'])
@permission_classes([IsPrincipalAuthenticated])
def finance_collection(request):
    if request.method == 'POST':
        return finance_create(request)
    return finance_list(request)


def finance_create(request):
    """Create a finance for the authenticated (non-admin) principal"""
    principal = request.user
    rules.ensure_can_create(principal, request.data)

    serializer = FinanceSerializer(data=request.data)
    if not serializer.is_valid():
        return _validation_error(serializer)

    extra = {}
    vehicle = VehicleDataClient(ServiceEndpoints.from_settings())
    if vehicle.enabled:
        try:
            specs = vehicle.fetch_specs()
        except (requests.RequestException, ValueError) as e:
            logger.warning("vehicle data lookup failed: %s", e)
            raise UpstreamServiceError("Could not fetch the vehicle data.")
        extra['vehicle_specs'] = specs
        for key, field in VEHICLE_SPEC_FIELDS.items():
            if specs.get(key) and not serializer.validated_data.get(field):
                extra.setdefault(field, str(specs[key]))

    finance = serializer.save(user_id=principal.id, **extra)
    logger.info("finance created: finance=%s user=%s installment=%s",
                finance.finance_id, principal.id, finance.installment_value)

    return Response(FinanceSerializer(finance).data, status=status.HTTP_201_CREATED)


def finance_list(request):
    """List the principal's own finances, optionally filtered"""
    principal = request.user
    rules.ensure_owner_role(principal, "list")

    queryset = Finance.objects.filter(user_id=principal.id, deleted=False)
    for param, field in FILTER_FIELDS.items():
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{field: value})
    queryset = queryset.order_by('-created_at')

    if not queryset.exists():
        raise NotFoundError("No finances found for this user.")

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request)
    serializer = FinanceSerializer(page, many=True)

    response = paginator.get_paginated_response(serializer.data)
    response['X-Total-Count'] = queryset.count()
    return response


# ===============================================
# DETAIL ENDPOINTS
# ===============================================

@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsPrincipalAuthenticated])
def finance_detail(request, finance_id):
    if request.method == 'GET':
        return finance_retrieve(request, finance_id)
    if request.method == 'DELETE':
        return finance_soft_delete(request, finance_id)
    return finance_update(request, finance_id)


def finance_retrieve(request, finance_id):
    principal = request.user
    rules.ensure_owner_role(principal, "retrieve")

    finance = rules.owned_finance_or_404(finance_id, principal)
    return Response(FinanceSerializer(finance).data)


def finance_update(request, finance_id):
    """Full (PUT) or partial (PATCH) update of the owner's content fields"""
    principal = request.user
    rules.ensure_can_update(principal, request.data)

    finance = rules.owned_finance_or_404(finance_id, principal)
    serializer = FinanceSerializer(
        finance, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return _validation_error(serializer)

    finance = serializer.save()
    logger.info("finance updated: finance=%s fields=%s",
                finance.finance_id, sorted(serializer.validated_data))
    return Response(FinanceSerializer(finance).data)


def finance_soft_delete(request, finance_id):
    rules.ensure_admin(request.user, "Only administrators can delete finances.")
    finance = _set_deleted(finance_id, True)
    logger.info("finance soft-deleted: finance=%s by=%s", finance.finance_id, request.user.id)
    return Response({"message": "Finance removed successfully."})


def _set_deleted(finance_id, deleted: bool) -> Finance:
    finance = get_object_or_404(Finance, finance_id=finance_id)
    finance.deleted = deleted
    finance.save(update_fields=["deleted", "updated_at"])
    return finance


# ===============================================
# ADMIN LIFECYCLE ENDPOINTS
# ===============================================

@api_view(['PATCH'])
@permission_classes([IsAdminPrincipal])
def finance_restore(request, finance_id):
    """Undo a soft delete; succeeds even if the finance was never deleted"""
    finance = _set_deleted(finance_id, False)
    logger.info("finance restored: finance=%s by=%s", finance.finance_id, request.user.id)
    return Response({"message": "Finance restored successfully."})


@api_view(['PATCH'])
@permission_classes([IsAdminPrincipal])
def finance_update_status(request, finance_id):
    serializer = FinanceStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"message": "Invalid status.", "errors": serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    finance = get_object_or_404(Finance, finance_id=finance_id)
    previous = finance.status
    finance.status = serializer.validated_data['status']
    finance.save(update_fields=["status", "updated_at"])
    logger.info("finance status changed: finance=%s %s -> %s by=%s",
                finance.finance_id, previous, finance.status, request.user.id)

    return Response(FinanceSerializer(finance).data)


# ===============================================
# CONTRACT ENDPOINTS
# ===============================================

@api_view(['POST'])
@permission_classes([IsPrincipalAuthenticated])
def finance_sign_contract(request, finance_id):
    """
    Sign the contract of an approved finance.
    Returns 200 with {"message": "...", "finance": {id, contractStatus, signedAt, status}}.
    """
    finance = sign_contract(finance_id, request.user, token=_bearer_token(request))
    return Response({
        "message": "Contract signed successfully!",
        "finance": SignedContractSerializer(finance).data,
    }, status=status.HTTP_200_OK)

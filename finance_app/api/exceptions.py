import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError as DRFValidationError

logger = logging.getLogger(__name__)


class FinanceAPIError(APIException):
    """Base class for errors rendered as {"message": ...}."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."
    default_code = "error"


class ValidationError(FinanceAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request payload."
    default_code = "invalid"


class AuthenticationError(FinanceAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized: missing or invalid token."
    default_code = "not_authenticated"


class AuthorizationError(FinanceAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied."
    default_code = "permission_denied"


class NotFoundError(FinanceAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Finance not found."
    default_code = "not_found"


class ConflictError(FinanceAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in the current state."
    default_code = "conflict"


class DependencyError(FinanceAPIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error while processing the request."
    default_code = "dependency_error"


class UpstreamServiceError(FinanceAPIError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "External service unavailable."
    default_code = "bad_gateway"


def finance_exception_handler(exc, context):
    """Render every API failure as {"message": ...} with the category in the status."""
    # rest_framework.views loads DEFAULT_AUTHENTICATION_CLASSES, which import this module
    from rest_framework.views import exception_handler

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("database error in %s", getattr(view, "__name__", view))
        exc = DependencyError()

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DRFValidationError):
        response.data = {"message": "Validation error.", "errors": response.data}
    elif isinstance(response.data, dict) and "detail" in response.data:
        response.data = {"message": str(response.data["detail"])}
    return response

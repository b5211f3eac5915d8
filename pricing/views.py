import logging
from decimal import InvalidOperation

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from finance_app.api.permissions import IsPrincipalAuthenticated
from pricing.calculators.pmt import compute_schedule, total_cost, round2
from pricing.serializers import ScheduleRequest, schedule_row_to_json

logger = logging.getLogger(__name__)


@api_view(["POST"])
@permission_classes([IsPrincipalAuthenticated])
def schedule_view(request):
    """Simulate a financing: fixed installment plus the month-by-month table."""
    try:
        req = ScheduleRequest.from_json(request.data)
    except ValueError as e:
        return Response({"message": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    try:
        principal = round2(req.principal)
        result = compute_schedule(
            principal, req.interest_rate, req.count_of_months,
            payment=req.installment_value,
        )
    except InvalidOperation:
        # magnitudes beyond the decimal context precision
        return Response({"message": "valores fora do intervalo suportado"},
                        status=status.HTTP_400_BAD_REQUEST)
    logger.debug("schedule_view: principal=%s rate=%s months=%s payment=%s",
                 principal, req.interest_rate, req.count_of_months, result["payment"])

    return Response({
        "principal": principal,
        "installmentValue": result["payment"],
        "countOfMonths": req.count_of_months,
        "interestRate": req.interest_rate,
        "totalInterest": result["total_interest"],
        "totalCost": total_cost(result),
        "schedule": [schedule_row_to_json(row) for row in result["schedule"]],
    }, status=status.HTTP_200_OK)

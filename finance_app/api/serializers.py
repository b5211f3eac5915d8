from decimal import Decimal

from rest_framework import serializers

from finance_app.core_db.models import Finance, STATUS_CHOICES
from pricing.calculators.pmt import MAX_TERM_MONTHS, compute_installment, round2

LOAN_TERM_FIELDS = ("value", "down_payment", "count_of_months", "interest_rate")


# ===============================================
# FINANCE SERIALIZERS
# ===============================================

class FinanceSerializer(serializers.ModelSerializer):
    """Finance record in its public (camelCase) shape."""
    id = serializers.UUIDField(source="finance_id", read_only=True)
    userId = serializers.CharField(source="user_id", read_only=True)
    modelName = serializers.CharField(
        source="model_name", max_length=128, required=False, allow_blank=True)
    value = serializers.DecimalField(max_digits=18, decimal_places=2)
    downPayment = serializers.DecimalField(
        source="down_payment", max_digits=18, decimal_places=2, required=False,
        min_value=Decimal("0"))
    countOfMonths = serializers.IntegerField(
        source="count_of_months", min_value=1, max_value=MAX_TERM_MONTHS)
    interestRate = serializers.DecimalField(
        source="interest_rate", max_digits=9, decimal_places=6, required=False,
        min_value=Decimal("0"), help_text="Taxa anual em decimal (0.08 = 8% a.a.)")
    installmentValue = serializers.DecimalField(
        source="installment_value", max_digits=18, decimal_places=2, required=False)
    financeDate = serializers.DateTimeField(source="finance_date", required=False)
    vehicleSpecs = serializers.JSONField(source="vehicle_specs", read_only=True)
    contractStatus = serializers.CharField(source="contract_status", read_only=True)
    contractSignedAt = serializers.DateTimeField(source="contract_signed_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Finance
        fields = [
            'id', 'userId', 'brand', 'modelName', 'type', 'value', 'downPayment',
            'countOfMonths', 'interestRate', 'installmentValue', 'financeDate',
            'vehicleSpecs', 'status', 'contractStatus', 'contractSignedAt',
            'deleted', 'createdAt', 'updatedAt',
        ]
        read_only_fields = ['status', 'deleted']

    fields_defaults = {"down_payment": Decimal("0"), "interest_rate": Decimal("0")}

    def validate_value(self, value):
        if value <= 0:
            raise serializers.ValidationError("Vehicle value must be greater than zero.")
        return value

    def validate_installmentValue(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("Installment value must be greater than zero.")
        return value

    def _current(self, attrs, field):
        if field in attrs:
            return attrs[field]
        if self.instance is not None:
            return getattr(self.instance, field)
        return self.fields_defaults.get(field)

    def validate(self, attrs):
        value = self._current(attrs, "value")
        down_payment = self._current(attrs, "down_payment")
        if value is not None and down_payment is not None and down_payment > value:
            raise serializers.ValidationError(
                {"downPayment": "Down payment cannot exceed the vehicle value."})

        # Parcela: recalcula quando os termos mudam e o cliente não informou o valor
        terms_changed = self.instance is None or any(f in attrs for f in LOAN_TERM_FIELDS)
        if "installment_value" not in attrs and terms_changed:
            principal = round2(value - (down_payment or 0))
            attrs["installment_value"] = compute_installment(
                principal,
                self._current(attrs, "interest_rate") or 0,
                self._current(attrs, "count_of_months"),
            )
        return attrs


class FinanceStatusSerializer(serializers.Serializer):
    """Admin-only status change"""
    status = serializers.ChoiceField(choices=STATUS_CHOICES)


class SignedContractSerializer(serializers.ModelSerializer):
    """Response for a signed contract"""
    id = serializers.UUIDField(source="finance_id", read_only=True)
    contractStatus = serializers.CharField(source="contract_status", read_only=True)
    signedAt = serializers.DateTimeField(source="contract_signed_at", read_only=True)

    class Meta:
        model = Finance
        fields = ['id', 'contractStatus', 'signedAt', 'status']

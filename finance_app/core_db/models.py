# core_db/models.py
import uuid
from django.db import models
from django.utils import timezone

# Helpers
MONEY = dict(max_digits=18, decimal_places=2)
RATE = dict(max_digits=9,  decimal_places=6)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_IN_PROGRESS = "in_progress"
STATUS_REJECTED = "rejected"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

STATUS_CHOICES = [
    (STATUS_PENDING, "Pending"),
    (STATUS_APPROVED, "Approved"),
    (STATUS_IN_PROGRESS, "In progress"),
    (STATUS_REJECTED, "Rejected"),
    (STATUS_COMPLETED, "Completed"),
    (STATUS_CANCELLED, "Cancelled"),
]

CONTRACT_UNSIGNED = "unsigned"
CONTRACT_SIGNED = "signed"

CONTRACT_STATUS_CHOICES = [
    (CONTRACT_UNSIGNED, "Unsigned"),
    (CONTRACT_SIGNED, "Signed"),
]


class StampMixin(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Finance(StampMixin):
    finance_id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False)
    # id do usuário no serviço de identidade externo
    user_id = models.CharField(max_length=64, db_index=True)
    brand = models.CharField(max_length=128, blank=True)
    model_name = models.CharField(max_length=128, blank=True)
    type = models.CharField(max_length=64, blank=True)
    value = models.DecimalField(**MONEY)
    down_payment = models.DecimalField(**MONEY, default=0)
    count_of_months = models.PositiveIntegerField()
    # taxa anual em decimal (0.08 = 8% a.a.)
    interest_rate = models.DecimalField(**RATE, default=0)
    installment_value = models.DecimalField(**MONEY)
    finance_date = models.DateTimeField(default=timezone.now)
    vehicle_specs = models.JSONField(null=True, blank=True)
    status = models.CharField(
        max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    contract_status = models.CharField(
        max_length=16, choices=CONTRACT_STATUS_CHOICES, default=CONTRACT_UNSIGNED)
    contract_signed_at = models.DateTimeField(null=True, blank=True)
    deleted = models.BooleanField(default=False, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self): return f"{self.brand} {self.model_name} ({self.user_id})"

    @property
    def principal_amount(self):
        return self.value - (self.down_payment or 0)

    @property
    def contract_number(self) -> str:
        return f"FIN-{self.finance_id.hex[:12].upper()}"

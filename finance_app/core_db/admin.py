from django.contrib import admin
from .models import Finance


@admin.register(Finance)
class FinanceAdmin(admin.ModelAdmin):
    list_display = ("finance_id", "user_id", "brand", "model_name", "value",
                    "count_of_months", "installment_value", "status", "contract_status", "deleted")
    search_fields = ("finance_id", "user_id", "brand", "model_name")
    list_filter = ("status", "contract_status", "deleted")
    readonly_fields = ("contract_signed_at", "created_at", "updated_at")

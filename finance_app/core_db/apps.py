from django.apps import AppConfig


class CoreDbConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "finance_app.core_db"
    label = "core_db"
    verbose_name = "Finances"

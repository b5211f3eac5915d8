from django.apps import AppConfig


class ApiConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "finance_app.api"
    label = "finance_api"

    def ready(self):
        from . import checks  # noqa: F401

from urllib.parse import urlparse

from django.conf import settings
from django.core.checks import Error, Warning, register


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@register("finance")
def check_service_endpoints(app_configs, **kwargs):
    from .integration import ServiceEndpoints

    endpoints = ServiceEndpoints.from_settings()
    errors = []

    if not _is_http_url(endpoints.user_service_url):
        errors.append(Error(
            "USER_SERVICE_URL must be an absolute http(s) URL.",
            hint="Point it at the user service, e.g. http://localhost:4000/api/users",
            id="finance_api.E001",
        ))
    if endpoints.timeout <= 0:
        errors.append(Error(
            "EXTERNAL_SERVICE_TIMEOUT must be a positive number of seconds.",
            id="finance_api.E002",
        ))
    if not endpoints.points_service_url:
        errors.append(Warning(
            "POINTS_SERVICE_URL is not set; signed contracts will not be reported to the points service.",
            id="finance_api.W001",
        ))
    elif not _is_http_url(endpoints.points_service_url):
        errors.append(Error(
            "POINTS_SERVICE_URL must be an absolute http(s) URL.",
            id="finance_api.E003",
        ))
    if getattr(settings, "VEHICLE_API_URL", "") and not _is_http_url(settings.VEHICLE_API_URL):
        errors.append(Error(
            "VEHICLE_API_URL must be an absolute http(s) URL.",
            id="finance_api.E004",
        ))
    return errors

# finance_app/api/integration.py
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

import requests
from django.conf import settings

from .rules import Principal, principal_for

logger = logging.getLogger(__name__)

DEFAULT_INTROSPECTION_PATHS = (
    "/auth/token/introspect",
    "/validate-token",
    "/auth/validate-token",
    "/auth/token/validate",
)


@dataclass(frozen=True)
class ServiceEndpoints:
    """Base URLs and timeout for every outbound collaborator."""
    user_service_url: str
    introspection_paths: Tuple[str, ...] = DEFAULT_INTROSPECTION_PATHS
    points_service_url: str = ""
    vehicle_api_url: str = ""
    timeout: float = 5.0

    @classmethod
    def from_settings(cls) -> "ServiceEndpoints":
        paths = getattr(settings, "IDENTITY_INTROSPECTION_PATHS", None) or DEFAULT_INTROSPECTION_PATHS
        return cls(
            user_service_url=(settings.USER_SERVICE_URL or "").rstrip("/"),
            introspection_paths=tuple(paths),
            points_service_url=(getattr(settings, "POINTS_SERVICE_URL", "") or "").rstrip("/"),
            vehicle_api_url=getattr(settings, "VEHICLE_API_URL", "") or "",
            timeout=float(getattr(settings, "EXTERNAL_SERVICE_TIMEOUT", 5.0)),
        )

    def introspection_urls(self):
        return [f"{self.user_service_url}{p}" for p in self.introspection_paths]


def _headers(*, token: Optional[str] = None, idem: Optional[str] = None) -> Dict[str, str]:
    h = {"Content-Type": "application/json"}
    if token:
        h["Authorization"] = f"Bearer {token}"
    if idem:
        h["Idempotency-Key"] = idem
    return h


def principal_from_payload(data: Any) -> Optional[Principal]:
    # Shapes seen from the identity service: {"user": {...}} or a flat {"_id"|"id", "email", "role"}
    if not isinstance(data, dict):
        return None
    user = data.get("user") if isinstance(data.get("user"), dict) else data
    user_id = user.get("id") or user.get("_id")
    if not user_id:
        return None
    return principal_for(user_id, user.get("role"),
                         email=user.get("email", ""), name=user.get("name", ""))


class IdentityClient:
    def __init__(self, endpoints: ServiceEndpoints):
        self.endpoints = endpoints

    def introspect(self, token: str) -> Optional[Principal]:
        """Resolve a bearer token; None when no endpoint vouches for it."""
        last_error = None
        for url in self.endpoints.introspection_urls():
            try:
                r = requests.post(url, json={"token": token}, headers=_headers(),
                                  timeout=self.endpoints.timeout)
            except requests.RequestException as e:
                last_error = e
                continue

            if not r.ok:
                last_error = f"status {r.status_code} from {url}"
                continue
            try:
                principal = principal_from_payload(r.json())
            except ValueError:
                principal = None
            if principal is None:
                last_error = f"invalid user payload from {url}"
                continue
            return principal

        logger.warning("token introspection failed on every endpoint: %s", last_error)
        return None

    def fetch_user(self, user_id: str, *, token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        url = f"{self.endpoints.user_service_url}/{user_id}"
        try:
            r = requests.get(url, headers=_headers(token=token), timeout=self.endpoints.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("user lookup failed for user_id=%s: %s", user_id, e)
            return None
        if not isinstance(data, dict):
            return None
        return data.get("user") if isinstance(data.get("user"), dict) else data


class PointsServiceClient:
    def __init__(self, endpoints: ServiceEndpoints):
        self.endpoints = endpoints

    @property
    def enabled(self) -> bool:
        return bool(self.endpoints.points_service_url)

    def contract_completed(self, finance) -> requests.Response:
        url = f"{self.endpoints.points_service_url}/contracts/completed"
        payload = {
            "userId": finance.user_id,
            "financeId": str(finance.finance_id),
            "contractValue": float(finance.value),
            "contractDate": finance.contract_signed_at.isoformat() if finance.contract_signed_at else None,
        }
        logger.debug("points notification: url=%s payload=%s", url, payload)
        return requests.post(url, json=payload,
                             headers=_headers(idem=f"contract-{finance.finance_id}"),
                             timeout=self.endpoints.timeout)


class VehicleDataClient:
    def __init__(self, endpoints: ServiceEndpoints):
        self.endpoints = endpoints

    @property
    def enabled(self) -> bool:
        return bool(self.endpoints.vehicle_api_url)

    def fetch_specs(self) -> Dict[str, Any]:
        """GET the vehicle data; raises requests.RequestException or ValueError."""
        r = requests.get(self.endpoints.vehicle_api_url, headers=_headers(),
                         timeout=self.endpoints.timeout)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict) or not data:
            raise ValueError("empty or invalid vehicle payload")
        return data

"""
Best-effort side effects of a signed contract.

Everything here runs after the signing transaction has committed. A failure in
one notification is logged and never propagated: it does not stop the other
notification and it does not change the outcome reported to the client.
"""
import logging
from typing import Optional

import requests
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from finance_app.core_db.models import Finance

from .integration import IdentityClient, PointsServiceClient, ServiceEndpoints

logger = logging.getLogger(__name__)

CONTRACT_EMAIL_TEMPLATE = "emails/contract_signed.html"


def notify_points_service(finance: Finance, endpoints: ServiceEndpoints) -> bool:
    client = PointsServiceClient(endpoints)
    if not client.enabled:
        logger.info("POINTS_SERVICE_URL not configured; skipping points for finance=%s",
                    finance.finance_id)
        return False
    try:
        r = client.contract_completed(finance)
    except requests.RequestException:
        logger.exception("points service unreachable for finance=%s", finance.finance_id)
        return False
    if not r.ok:
        logger.warning("points service answered %s for finance=%s",
                       r.status_code, finance.finance_id)
        return False
    return True


def resolve_recipient(finance: Finance, principal, endpoints: ServiceEndpoints,
                      token: Optional[str] = None):
    """(email, name) of the finance owner, asking the identity service if needed."""
    email = getattr(principal, "email", "") or ""
    name = getattr(principal, "name", "") or ""
    if email:
        return email, name or email

    user = IdentityClient(endpoints).fetch_user(finance.user_id, token=token)
    if not user or not user.get("email"):
        return None, None
    return user["email"], user.get("name") or user["email"]


def render_contract_email(finance: Finance, user_name: str) -> str:
    return render_to_string(CONTRACT_EMAIL_TEMPLATE, {
        "contract_number": finance.contract_number,
        "user_name": user_name,
        "finance": finance,
    })


def send_contract_email(finance: Finance, principal, endpoints: ServiceEndpoints,
                        token: Optional[str] = None) -> bool:
    email, name = resolve_recipient(finance, principal, endpoints, token)
    if not email:
        logger.warning("no e-mail address for owner of finance=%s; confirmation not sent",
                       finance.finance_id)
        return False

    html = render_contract_email(finance, name)
    message = EmailMultiAlternatives(
        subject=f"Financing contract {finance.contract_number} signed",
        body=strip_tags(html),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[email],
    )
    message.attach_alternative(html, "text/html")
    try:
        message.send()
    except Exception:
        logger.exception("failed to send contract e-mail for finance=%s", finance.finance_id)
        return False
    logger.info("contract e-mail sent for finance=%s", finance.finance_id)
    return True


def dispatch_contract_signed(finance_id, principal, *, endpoints: ServiceEndpoints,
                             token: Optional[str] = None) -> None:
    try:
        finance = Finance.objects.get(pk=finance_id)
    except Exception:
        logger.exception("could not reload finance=%s for notifications", finance_id)
        return

    try:
        notify_points_service(finance, endpoints)
    except Exception:
        logger.exception("points notification failed for finance=%s", finance_id)

    try:
        send_contract_email(finance, principal, endpoints, token)
    except Exception:
        logger.exception("contract e-mail failed for finance=%s", finance_id)

import logging
from functools import partial
from typing import Optional

from django.db import transaction
from django.utils import timezone

from finance_app.core_db.models import Finance, CONTRACT_UNSIGNED, STATUS_APPROVED

from .exceptions import ConflictError, NotFoundError
from .integration import ServiceEndpoints
from .notifications import dispatch_contract_signed
from .rules import SIGNED_STATE, ensure_can_sign

logger = logging.getLogger(__name__)


def sign_contract(finance_id, principal, *, endpoints: Optional[ServiceEndpoints] = None,
                  token: Optional[str] = None) -> Finance:
    """
    Move an approved finance to (signed, in_progress) and schedule the
    points/e-mail notifications to run once the change is committed.

    Unlike owner reads, the record is fetched by id alone and the owner is
    compared afterwards, so a foreign record answers 403 rather than 404.
    """
    endpoints = endpoints or ServiceEndpoints.from_settings()

    finance = Finance.objects.filter(pk=finance_id, deleted=False).first()
    if finance is None:
        raise NotFoundError("Finance not found.")
    ensure_can_sign(finance, principal)

    signed_at = timezone.now()
    with transaction.atomic():
        # Conditional update: only one concurrent signer can match the unsigned/approved row
        updated = Finance.objects.filter(
            pk=finance.pk,
            deleted=False,
            contract_status=CONTRACT_UNSIGNED,
            status=STATUS_APPROVED,
        ).update(contract_signed_at=signed_at, updated_at=signed_at, **SIGNED_STATE)

        if updated != 1:
            finance.refresh_from_db()
            ensure_can_sign(finance, principal)
            raise ConflictError("The finance changed while signing; try again.")

        transaction.on_commit(partial(
            dispatch_contract_signed, finance.pk, principal,
            endpoints=endpoints, token=token,
        ))

    finance.refresh_from_db()
    logger.info("contract signed: finance=%s user=%s", finance.pk, principal.id)
    return finance

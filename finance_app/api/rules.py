"""
Authorization and lifecycle rules for finance records.

Principals come in two closed variants, ``UserPrincipal`` (owns finances,
requests signatures) and ``AdminPrincipal`` (moves status, deletes and
restores). Every check here is a pure decision that raises one of the
``finance_app.api.exceptions`` errors; the only store access is
``owned_finance_or_404``, which looks a record up by id *and* owner in a
single query so that a foreign record and a missing one are indistinguishable.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from finance_app.core_db.models import (
    Finance, STATUS_APPROVED, STATUS_IN_PROGRESS,
    CONTRACT_SIGNED,
)

from .exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Principal(ABC):
    id: str
    email: str = ""
    name: str = ""

    # DRF reads these from request.user
    is_authenticated = True
    is_anonymous = False

    @property
    @abstractmethod
    def role(self) -> str:
        ...

    @property
    def pk(self):
        return self.id


@dataclass(frozen=True)
class UserPrincipal(Principal):
    @property
    def role(self) -> str:
        return ROLE_USER


@dataclass(frozen=True)
class AdminPrincipal(Principal):
    @property
    def role(self) -> str:
        return ROLE_ADMIN


def principal_for(user_id, role: Optional[str], email: str = "", name: str = "") -> Principal:
    cls = AdminPrincipal if role == ROLE_ADMIN else UserPrincipal
    return cls(id=str(user_id), email=email or "", name=name or "")


def is_admin(principal) -> bool:
    return isinstance(principal, AdminPrincipal)


# ===============================================
# OWNER OPERATIONS
# ===============================================

OWNER_ONLY_MESSAGES = {
    "create": "Administrators cannot create finances.",
    "list": "Administrators do not have finances of their own.",
    "retrieve": "Administrators cannot access finances this way.",
    "update": "Administrators cannot update finances as a regular user.",
}


def ensure_owner_role(principal, action: str) -> None:
    """Admins have no personal finances: owner-style operations are refused."""
    if is_admin(principal):
        raise AuthorizationError(OWNER_ONLY_MESSAGES.get(action, "Access denied."))


def ensure_json_object(payload) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object.")


def ensure_can_create(principal, payload) -> None:
    ensure_owner_role(principal, "create")
    ensure_json_object(payload)

    owner_id = payload.get("userId")
    if owner_id in (None, ""):
        raise ValidationError("User id is required.")
    if str(owner_id) != principal.id:
        raise AuthorizationError("Creating a finance for another user is not allowed.")
    if "status" in payload:
        raise AuthorizationError("Only administrators can change the status.")


def ensure_can_update(principal, payload) -> None:
    ensure_owner_role(principal, "update")
    ensure_json_object(payload)

    if "status" in payload:
        raise AuthorizationError("Only administrators can change the status.")
    owner_id = payload.get("userId")
    if owner_id not in (None, "") and str(owner_id) != principal.id:
        raise AuthorizationError("Changing the owner of a finance is not allowed.")


def owned_finance_or_404(finance_id, principal) -> Finance:
    finance = Finance.objects.filter(
        finance_id=finance_id, user_id=principal.id, deleted=False
    ).first()
    if finance is None:
        raise NotFoundError("Finance not found.")
    return finance


# ===============================================
# ADMIN OPERATIONS
# ===============================================

def ensure_admin(principal, message: str = "Only administrators can perform this operation.") -> None:
    if not is_admin(principal):
        raise AuthorizationError(message)


# ===============================================
# CONTRACT SIGNING
# ===============================================

def ensure_can_sign(finance: Finance, principal) -> None:
    """Preconditions of the unsigned -> signed transition, checked in order."""
    if finance.user_id != principal.id:
        raise AuthorizationError("You are not allowed to sign this contract.")
    if finance.contract_status == CONTRACT_SIGNED:
        raise ConflictError("This contract has already been signed.")
    if finance.status != STATUS_APPROVED:
        raise ConflictError("Only approved finances can have their contract signed.")


SIGNED_STATE = {
    "contract_status": CONTRACT_SIGNED,
    "status": STATUS_IN_PROGRESS,
}

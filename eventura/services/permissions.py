"""
Role, ownership and account-status checks.

Works on any caller object exposing ``id``, ``role`` and ``account_status`` - the ORM
``User`` on the backend and the client's ``Caller`` projection alike.
"""
from typing import Optional

from ..errors import AccountSuspended, Forbidden
from ..schemas.common import AccountStatus, RequestStatus, UserRole


def _role(actor) -> Optional[UserRole]:
    role = getattr(actor, "role", None)
    return UserRole(role) if role is not None else None


def is_admin(actor) -> bool:
    return _role(actor) == UserRole.ADMIN


def is_suspended(actor) -> bool:
    status = getattr(actor, "account_status", None)
    return status is not None and AccountStatus(status) == AccountStatus.SUSPENDED


def ensure_not_suspended(actor) -> None:
    if is_suspended(actor):
        raise AccountSuspended()


def ensure_role(actor, *roles: UserRole) -> None:
    if _role(actor) not in roles:
        allowed = " or ".join(r.value for r in roles)
        raise Forbidden(f"Only {allowed} accounts can perform this action")


def ensure_owner_or_admin(actor, owner_id: Optional[int], message: str = "Not authorized to modify this request") -> None:
    if is_admin(actor):
        return
    if owner_id is None or getattr(actor, "id", None) != owner_id:
        raise Forbidden(message)


def ensure_can_complete(actor, request) -> None:
    """Owner, the assigned provider or an admin may mark work as completed."""
    if is_admin(actor):
        return
    actor_id = getattr(actor, "id", None)
    if actor_id is not None and actor_id in (request.client_id, request.assigned_provider_id):
        return
    raise Forbidden("Not authorized to complete this request")


def can_view_request(actor, request) -> bool:
    status = RequestStatus(request.status)
    if is_admin(actor):
        return True
    if status == RequestStatus.DELETED:
        return False
    if status == RequestStatus.DRAFT:
        return getattr(actor, "id", None) == request.client_id
    return True


def can_view_payment(actor, payment) -> bool:
    if is_admin(actor):
        return True
    return getattr(actor, "id", None) in (payment.client_id, payment.provider_id)

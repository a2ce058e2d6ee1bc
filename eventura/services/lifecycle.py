"""
Engagement lifecycle rules.

Pure functions over statuses, shared by the backend (authoritative) and the client
(local pre-validation before any network call). Every guard raises a typed error
from ``eventura.errors``.
"""
from typing import Dict, FrozenSet, Iterable, Optional

from ..errors import AlreadyReviewed, DuplicatePayment, InvalidInput, InvalidRating, InvalidTransition
from ..schemas.common import PaymentStatus, PitchStatus, RequestStatus


REQUEST_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({RequestStatus.OPEN, RequestStatus.CANCELLED, RequestStatus.DELETED}),
    RequestStatus.OPEN: frozenset({RequestStatus.ASSIGNED, RequestStatus.CANCELLED, RequestStatus.DELETED}),
    RequestStatus.ASSIGNED: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.DELETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.DELETED: frozenset(),
}

PITCH_TRANSITIONS: Dict[PitchStatus, FrozenSet[PitchStatus]] = {
    PitchStatus.PENDING: frozenset({PitchStatus.WIN, PitchStatus.LOSE}),
    PitchStatus.WIN: frozenset(),
    PitchStatus.LOSE: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

TERMINAL_REQUEST_STATUSES = frozenset(s for s, targets in REQUEST_TRANSITIONS.items() if not targets)

# Targets a caller may ask for through the status endpoint. ASSIGNED only happens
# through pitch selection and DELETED through the delete endpoint.
REQUESTABLE_STATUSES = frozenset({RequestStatus.OPEN, RequestStatus.CANCELLED, RequestStatus.COMPLETED})

INITIAL_REQUEST_STATUSES = frozenset({RequestStatus.DRAFT, RequestStatus.OPEN})

RETRY_APPEND = "append"
RETRY_DISABLED = "disabled"

RECONCILE_NONE = "none"
RECONCILE_MATCH_PITCH = "match_pitch"
RECONCILE_WITHIN_BUDGET = "within_budget"


def can_transition(table, current, target) -> bool:
    enum_cls = type(next(iter(table)))
    return enum_cls(target) in table.get(enum_cls(current), frozenset())


def is_terminal(status) -> bool:
    return RequestStatus(status) in TERMINAL_REQUEST_STATUSES


def ensure_request_transition(current, target) -> None:
    current, target = RequestStatus(current), RequestStatus(target)
    if not can_transition(REQUEST_TRANSITIONS, current, target):
        if current in TERMINAL_REQUEST_STATUSES:
            raise InvalidTransition(f"Request is {current.value} and can no longer change")
        raise InvalidTransition(f"Cannot move request from {current.value} to {target.value}")


def ensure_requestable_target(target) -> RequestStatus:
    target = RequestStatus(target)
    if target == RequestStatus.ASSIGNED:
        raise InvalidTransition("Requests are assigned by selecting a pitch")
    if target not in REQUESTABLE_STATUSES:
        raise InvalidTransition(f"Status {target.value} cannot be set directly")
    return target


def ensure_initial_status(status) -> RequestStatus:
    status = RequestStatus(status)
    if status not in INITIAL_REQUEST_STATUSES:
        raise InvalidTransition("New requests start as DRAFT or OPEN")
    return status


def ensure_budget_editable(request_status) -> None:
    if RequestStatus(request_status) not in INITIAL_REQUEST_STATUSES:
        raise InvalidTransition("Budget can only change before a pitch is selected")


def ensure_pitch_transition(current, target) -> None:
    current, target = PitchStatus(current), PitchStatus(target)
    if not can_transition(PITCH_TRANSITIONS, current, target):
        raise InvalidTransition(f"Pitch is already {current.value}")


def ensure_payment_transition(current, target) -> None:
    current, target = PaymentStatus(current), PaymentStatus(target)
    if not can_transition(PAYMENT_TRANSITIONS, current, target):
        raise InvalidTransition(f"Cannot move payment from {current.value} to {target.value}")


def ensure_open_for_pitches(request_status) -> None:
    if RequestStatus(request_status) != RequestStatus.OPEN:
        raise InvalidTransition("Pitches can only be submitted on OPEN requests")


def ensure_selectable(request_status, pitch_status) -> None:
    if RequestStatus(request_status) != RequestStatus.OPEN:
        raise InvalidTransition("A pitch can only be selected while the request is OPEN")
    ensure_pitch_transition(pitch_status, PitchStatus.WIN)


def ensure_payable(request_status, existing: Iterable, retry_policy: str = RETRY_APPEND) -> None:
    """Request must be ASSIGNED and carry no live payment.

    ``existing`` holds the statuses of payments already recorded for the request.
    """
    if RequestStatus(request_status) != RequestStatus.ASSIGNED:
        raise InvalidTransition("Payments can only be made on ASSIGNED requests")
    statuses = [PaymentStatus(s) for s in existing]
    if not statuses:
        return
    if retry_policy == RETRY_DISABLED:
        raise DuplicatePayment()
    if any(s != PaymentStatus.FAILED for s in statuses):
        raise DuplicatePayment()


def ensure_completable(request_status, latest_payment_status: Optional[str]) -> None:
    ensure_request_transition(request_status, RequestStatus.COMPLETED)
    if latest_payment_status is None or PaymentStatus(latest_payment_status) != PaymentStatus.COMPLETED:
        raise InvalidTransition("Payment must be completed before the request can be completed")


def ensure_reviewable(request_status, already_reviewed: bool = False) -> None:
    if already_reviewed:
        raise AlreadyReviewed()
    if RequestStatus(request_status) != RequestStatus.COMPLETED:
        raise InvalidTransition("Only COMPLETED requests can be reviewed")


def validate_rating(rating, low: int, high: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating(f"Rating must be a whole number between {low} and {high}")
    if rating < low or rating > high:
        raise InvalidRating(f"Rating must be between {low} and {high}")
    return rating


def validate_positive(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise InvalidInput(f"{field} must be greater than 0")
    return float(value)


def reconcile_amount(amount: float, policy: str, pitch_price: Optional[float], budget: Optional[float]) -> None:
    if policy == RECONCILE_MATCH_PITCH and pitch_price is not None:
        if abs(amount - pitch_price) > 0.005:
            raise InvalidInput(f"Amount must match the accepted pitch price of {pitch_price:.2f}")
    elif policy == RECONCILE_WITHIN_BUDGET and budget is not None:
        if amount - budget > 0.005:
            raise InvalidInput(f"Amount exceeds the request budget of {budget:.2f}")

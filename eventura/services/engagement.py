"""
Server-side lifecycle operations spanning requests, pitches, payments and reviews.

Each operation validates with the shared lifecycle rules, commits its state change in
a single transaction and only then emits notifications.
"""
import uuid
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AlreadyReviewed, DuplicatePayment, DuplicatePitch, Forbidden, InvalidTransition, NotFound
from ..models.models import Payment, Pitch, Review, ServiceRequest, User
from ..schemas.common import PaymentStatus, PitchStatus, RequestStatus, UserRole
from ..schemas.payments import PaymentCreate
from ..schemas.pitches import PitchCreate
from ..schemas.reviews import ReviewCreate
from ..schemas.service_requests import ServiceRequestCreate
from . import lifecycle, permissions
from .notifications import notify


logger = structlog.get_logger(__name__)


def load_request(db: Session, request_id: int, actor: User) -> ServiceRequest:
    request = db.get(ServiceRequest, request_id)
    if request is None or not permissions.can_view_request(actor, request):
        raise NotFound("Request not found")
    return request


def _latest_payment(db: Session, request_id: int) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.request_id == request_id).order_by(Payment.id.desc()).first()


def _pending_pitch_providers(db: Session, request_id: int) -> List[int]:
    rows = (
        db.query(Pitch.provider_id)
        .filter(Pitch.request_id == request_id, Pitch.status == PitchStatus.PENDING)
        .all()
    )
    return [r[0] for r in rows]


# ----- Requests -----
def create_request(db: Session, actor: User, data: ServiceRequestCreate) -> ServiceRequest:
    permissions.ensure_role(actor, UserRole.CLIENT)
    initial = lifecycle.ensure_initial_status(data.status)
    request = ServiceRequest(
        client_id=actor.id,
        title=data.title.strip(),
        event_name=data.event_name.strip(),
        event_date=data.event_date,
        location=data.location.strip(),
        service_type=data.service_type,
        description=data.description or "",
        budget=data.budget,
        status=initial,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("request_created", request_id=request.id, client_id=actor.id, status=initial.value)
    return request


def change_request_status(db: Session, actor: User, request: ServiceRequest, target) -> ServiceRequest:
    target = lifecycle.ensure_requestable_target(target)
    current = RequestStatus(request.status)
    recipients: List[Optional[int]] = []

    if target == RequestStatus.COMPLETED:
        permissions.ensure_can_complete(actor, request)
        latest = _latest_payment(db, request.id)
        lifecycle.ensure_completable(current, latest.payment_status if latest else None)
        recipients = [uid for uid in (request.client_id, request.assigned_provider_id) if uid != actor.id]
        message = f"Request '{request.title}' has been marked as completed"
    else:
        permissions.ensure_owner_or_admin(actor, request.client_id)
        lifecycle.ensure_request_transition(current, target)
        if target == RequestStatus.CANCELLED:
            recipients = _pending_pitch_providers(db, request.id) + [request.assigned_provider_id]
            message = f"Request '{request.title}' has been cancelled by the client"
        else:
            recipients = [request.client_id]
            message = f"Your request '{request.title}' is now open for pitches"

    request.status = target
    db.commit()
    db.refresh(request)
    logger.info("request_status_changed", request_id=request.id, actor_id=actor.id, before=current.value, after=target.value)
    notify(db, recipients, message, event=f"request_{target.value.lower()}", request_id=request.id)
    return request


def delete_request(db: Session, actor: User, request: ServiceRequest) -> None:
    permissions.ensure_owner_or_admin(actor, request.client_id, "Not authorized to delete this request")
    current = RequestStatus(request.status)
    lifecycle.ensure_request_transition(current, RequestStatus.DELETED)
    recipients = _pending_pitch_providers(db, request.id) + [request.assigned_provider_id]
    request.status = RequestStatus.DELETED
    db.commit()
    logger.info("request_deleted", request_id=request.id, actor_id=actor.id, before=current.value)
    notify(db, recipients, f"Request '{request.title}' has been removed", event="request_deleted", request_id=request.id)


def update_budget(db: Session, actor: User, request: ServiceRequest, budget: float) -> ServiceRequest:
    permissions.ensure_owner_or_admin(actor, request.client_id)
    lifecycle.ensure_budget_editable(request.status)
    request.budget = budget
    db.commit()
    db.refresh(request)
    return request


# ----- Pitches -----
def submit_pitch(db: Session, actor: User, data: PitchCreate) -> Pitch:
    permissions.ensure_role(actor, UserRole.PROVIDER)
    request = load_request(db, data.request_id, actor)
    lifecycle.ensure_open_for_pitches(request.status)
    exists = db.query(Pitch).filter(Pitch.request_id == request.id, Pitch.provider_id == actor.id).first()
    if exists:
        raise DuplicatePitch()
    pitch = Pitch(
        request_id=request.id,
        provider_id=actor.id,
        pitch_details=data.pitch_details.strip(),
        proposed_price=data.proposed_price,
        status=PitchStatus.PENDING,
    )
    db.add(pitch)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePitch()
    db.refresh(pitch)
    logger.info("pitch_submitted", pitch_id=pitch.id, request_id=request.id, provider_id=actor.id)
    notify(db, [request.client_id], f"New pitch received for '{request.title}'", event="pitch_submitted", request_id=request.id)
    return pitch


def select_pitch(db: Session, actor: User, pitch_id: int) -> Tuple[Pitch, List[Pitch], ServiceRequest]:
    """Flip the winner to WIN, every sibling to LOSE and the request to ASSIGNED in one commit."""
    pitch = db.get(Pitch, pitch_id)
    if pitch is None:
        raise NotFound("Pitch not found")
    request = load_request(db, pitch.request_id, actor)
    if request.client_id != actor.id:
        raise Forbidden("Only the request owner can select a pitch")
    lifecycle.ensure_selectable(request.status, pitch.status)

    try:
        # Conditional update claims the request; a concurrent selection loses the race here
        claimed = (
            db.query(ServiceRequest)
            .filter(ServiceRequest.id == request.id, ServiceRequest.status == RequestStatus.OPEN)
            .update(
                {ServiceRequest.status: RequestStatus.ASSIGNED, ServiceRequest.assigned_provider_id: pitch.provider_id},
                synchronize_session=False,
            )
        )
        if claimed != 1:
            raise InvalidTransition("A pitch has already been selected for this request")
        siblings = db.query(Pitch).filter(Pitch.request_id == request.id).all()
        for sibling in siblings:
            target = PitchStatus.WIN if sibling.id == pitch.id else PitchStatus.LOSE
            lifecycle.ensure_pitch_transition(sibling.status, target)
            sibling.status = target
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    winner = db.get(Pitch, pitch.id)
    losers = (
        db.query(Pitch)
        .filter(Pitch.request_id == request.id, Pitch.id != pitch.id)
        .order_by(Pitch.id)
        .all()
    )
    logger.info(
        "pitch_selected",
        request_id=request.id,
        pitch_id=winner.id,
        provider_id=winner.provider_id,
        losing=[p.id for p in losers],
    )
    notify(db, [winner.provider_id], f"Congratulations! Your pitch for '{request.title}' was selected", event="pitch_won", request_id=request.id)
    notify(db, [p.provider_id for p in losers], f"Your pitch for '{request.title}' was not selected", event="pitch_lost", request_id=request.id)
    return winner, losers, request


# ----- Payments -----
def create_payment(db: Session, actor: User, data: PaymentCreate) -> Payment:
    permissions.ensure_role(actor, UserRole.CLIENT)
    request = load_request(db, data.request_id, actor)
    if request.client_id != actor.id:
        raise Forbidden("Only the request owner can pay for it")
    existing = [p.payment_status for p in db.query(Payment).filter(Payment.request_id == request.id).all()]
    lifecycle.ensure_payable(request.status, existing, settings.payment_retry_policy)
    winning = (
        db.query(Pitch)
        .filter(Pitch.request_id == request.id, Pitch.status == PitchStatus.WIN)
        .first()
    )
    lifecycle.reconcile_amount(
        data.amount,
        settings.payment_reconciliation,
        winning.proposed_price if winning else None,
        request.budget,
    )
    payment = Payment(
        request_id=request.id,
        client_id=request.client_id,
        provider_id=request.assigned_provider_id,
        amount=data.amount,
        payment_method=data.payment_method.strip(),
        payment_status=PaymentStatus.PENDING,
        transaction_id=uuid.uuid4().hex,
    )
    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePayment()
    db.refresh(payment)
    logger.info("payment_created", payment_id=payment.id, request_id=request.id, amount=payment.amount, attempt=len(existing) + 1)
    notify(
        db,
        [payment.provider_id],
        f"Payment of {payment.amount:.2f} initiated for '{request.title}'",
        event="payment_created",
        request_id=request.id,
    )
    return payment


def update_payment_status(db: Session, actor: User, payment_id: int, target) -> Payment:
    payment = db.get(Payment, payment_id)
    if payment is None or not permissions.can_view_payment(actor, payment):
        raise NotFound("Payment not found")
    permissions.ensure_owner_or_admin(actor, payment.client_id, "Not authorized to update this payment")
    current = PaymentStatus(payment.payment_status)
    target = PaymentStatus(target)
    lifecycle.ensure_payment_transition(current, target)
    payment.payment_status = target
    db.commit()
    db.refresh(payment)
    title = payment.request.title
    logger.info("payment_status_changed", payment_id=payment.id, before=current.value, after=target.value)
    if target == PaymentStatus.COMPLETED:
        notify(
            db,
            [payment.client_id, payment.provider_id],
            f"Payment of {payment.amount:.2f} for '{title}' completed",
            event="payment_completed",
            payment_id=payment.id,
        )
    else:
        notify(
            db,
            [payment.client_id],
            f"Payment of {payment.amount:.2f} for '{title}' failed. You can retry the payment.",
            event="payment_failed",
            payment_id=payment.id,
        )
    return payment


# ----- Reviews -----
def create_review(db: Session, actor: User, data: ReviewCreate) -> Review:
    permissions.ensure_role(actor, UserRole.CLIENT)
    request = load_request(db, data.request_id, actor)
    if request.client_id != actor.id:
        raise Forbidden("Only the request owner can review it")
    lifecycle.validate_rating(data.rating, settings.rating_min, settings.rating_max)
    reviewed = db.query(Review).filter(Review.request_id == request.id).first() is not None
    lifecycle.ensure_reviewable(request.status, reviewed)
    if request.assigned_provider_id is None:
        raise NotFound("Provider not found")
    review = Review(
        request_id=request.id,
        client_id=request.client_id,
        provider_id=request.assigned_provider_id,
        rating=data.rating,
        comment=(data.comment or "").strip(),
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyReviewed()
    db.refresh(review)
    logger.info("review_created", review_id=review.id, request_id=request.id, rating=review.rating)
    notify(
        db,
        [review.provider_id],
        f"You received a {review.rating}-star review for '{request.title}'",
        event="review_created",
        request_id=request.id,
    )
    return review

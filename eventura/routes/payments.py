from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.security import get_active_user, get_current_user, require_roles
from ..db import get_db
from ..errors import NotFound
from ..models.models import Payment, User
from ..schemas.common import Page, UserRole
from ..schemas.payments import PaymentCreate, PaymentResponse, PaymentStatusUpdate
from ..services import engagement, permissions
from ..services.pagination import PageParams, paginate


router = APIRouter(prefix="/payments", tags=["payments"])

PAYMENT_SORT_COLUMNS = {
    "id": Payment.id,
    "createdAt": Payment.created_at,
    "amount": Payment.amount,
    "paymentStatus": Payment.payment_status,
}


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.CLIENT)),
):
    return engagement.create_payment(db, me, payload)


@router.get("/request/{request_id}/status", response_model=PaymentResponse)
def payment_status_for_request(request_id: int, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    request = engagement.load_request(db, request_id, me)
    payment = (
        db.query(Payment)
        .filter(Payment.request_id == request.id)
        .order_by(Payment.id.desc())
        .first()
    )
    if payment is None or not permissions.can_view_payment(me, payment):
        raise NotFound("No payment found for this request")
    return payment


@router.put("/{payment_id}/status", response_model=PaymentResponse)
def update_payment_status(
    payment_id: int,
    payload: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_active_user),
):
    return engagement.update_payment_status(db, me, payment_id, payload.status)


@router.get("/provider", response_model=Page[PaymentResponse])
def provider_payments(
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.PROVIDER, active=False)),
):
    q = db.query(Payment).filter(Payment.provider_id == me.id)
    return paginate(q, params, PaymentResponse, PAYMENT_SORT_COLUMNS, Payment.id)

from typing import Optional, Union

import structlog

from ..errors import DuplicatePayment, Forbidden, NotFound
from ..schemas.common import Page, PaymentStatus, UserRole
from ..schemas.payments import PaymentCreate, PaymentResponse, PaymentStatusUpdate
from ..schemas.service_requests import ServiceRequestResponse
from ..services import lifecycle
from .auth import AuthService
from .http import ApiClient, build_payload, page_params
from .service_requests import RequestRef, request_id_of


logger = structlog.get_logger(__name__)

PaymentRef = Union[int, PaymentResponse]


class PaymentService:
    """Payments on ASSIGNED requests.

    A FAILED payment stays on record; retrying appends a new one.
    """

    def __init__(self, api: ApiClient, auth: AuthService):
        self.api = api
        self.auth = auth

    async def create_payment(self, request: RequestRef, amount: float, payment_method: str) -> PaymentResponse:
        caller = await self.auth.require_active(UserRole.CLIENT)
        lifecycle.validate_positive(amount, "Amount")
        if isinstance(request, ServiceRequestResponse):
            if request.client_id != caller.id:
                raise Forbidden("Only the request owner can pay for it")
            lifecycle.ensure_payable(request.status, [])
        payload = build_payload(
            PaymentCreate,
            request_id=request_id_of(request),
            amount=amount,
            payment_method=(payment_method or "").strip(),
        )
        data = await self.api.post("/payments", json=payload)
        payment = PaymentResponse.model_validate(data)
        logger.info("payment_created", payment_id=payment.id, request_id=payment.request_id)
        return payment

    async def get_status(self, request: RequestRef) -> PaymentResponse:
        """Latest payment recorded for the request. NotFound when there is none."""
        data = await self.api.get(f"/payments/request/{request_id_of(request)}/status")
        return PaymentResponse.model_validate(data)

    async def update_status(self, payment: PaymentRef, status: PaymentStatus) -> PaymentResponse:
        caller = await self.auth.require_active()
        status = PaymentStatus(status)
        if isinstance(payment, PaymentResponse):
            if caller.role != UserRole.ADMIN and payment.client_id != caller.id:
                raise Forbidden("Not authorized to update this payment")
            lifecycle.ensure_payment_transition(payment.payment_status, status)
        else:
            # Only PENDING payments move, so the target must be reachable from it
            lifecycle.ensure_payment_transition(PaymentStatus.PENDING, status)
        payment_id = payment.id if isinstance(payment, PaymentResponse) else int(payment)
        payload = build_payload(PaymentStatusUpdate, status=status)
        data = await self.api.put(f"/payments/{payment_id}/status", json=payload)
        updated = PaymentResponse.model_validate(data)
        logger.info("payment_status_changed", payment_id=updated.id, status=updated.payment_status.value)
        return updated

    async def retry_payment(self, request: RequestRef, amount: float, payment_method: str) -> PaymentResponse:
        """Record a new payment after the latest one FAILED."""
        try:
            latest = await self.get_status(request)
        except NotFound:
            latest = None
        if latest is not None and latest.payment_status != PaymentStatus.FAILED:
            raise DuplicatePayment()
        return await self.create_payment(request, amount, payment_method)

    async def provider_payments(self, page: int = 0, size: Optional[int] = None, sort: Optional[str] = None) -> Page[PaymentResponse]:
        params = page_params(page, size, sort)
        data = await self.api.get("/payments/provider", params=params)
        return Page[PaymentResponse].model_validate(data)

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import CamelModel, PaymentStatus


class PaymentCreate(CamelModel):
    request_id: int
    amount: float = Field(gt=0)
    payment_method: str = Field(min_length=1, max_length=50)


class PaymentStatusUpdate(CamelModel):
    status: PaymentStatus


class PaymentResponse(CamelModel):
    id: int
    request_id: int
    client_id: int
    provider_id: int
    amount: float
    payment_method: str
    payment_status: PaymentStatus
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None

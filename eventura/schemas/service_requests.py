from datetime import date, datetime
from typing import Optional

from pydantic import Field

from .common import CamelModel, RequestStatus, ServiceType


class ServiceRequestCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    event_name: str = Field(min_length=1, max_length=200)
    event_date: date
    location: str = Field(min_length=1, max_length=255)
    service_type: ServiceType
    description: str = ""
    budget: float = Field(gt=0)
    # Only DRAFT or OPEN are accepted on creation
    status: RequestStatus = RequestStatus.OPEN


class RequestStatusUpdate(CamelModel):
    status: RequestStatus


class BudgetUpdate(CamelModel):
    budget: float = Field(gt=0)


class ServiceRequestResponse(CamelModel):
    id: int
    client_id: int
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    title: str
    event_name: str
    event_date: date
    location: str
    service_type: ServiceType
    description: str = ""
    budget: float
    status: RequestStatus
    assigned_provider_id: Optional[int] = None
    pitch_count: int = 0
    created_at: Optional[datetime] = None

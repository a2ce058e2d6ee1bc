from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from .common import CamelModel, PitchStatus
from .service_requests import ServiceRequestResponse


class PitchCreate(CamelModel):
    request_id: int
    pitch_details: str = Field(min_length=1)
    proposed_price: float = Field(gt=0)

    @field_validator("pitch_details", mode="before")
    @classmethod
    def _strip_details(cls, value):
        return value.strip() if isinstance(value, str) else value


class PitchResponse(CamelModel):
    id: int
    request_id: int
    provider_id: int
    pitch_details: str
    proposed_price: float
    status: PitchStatus
    created_at: Optional[datetime] = None


class PitchSelectionResponse(CamelModel):
    """Outcome of selecting a pitch: one winner, every sibling lost, request assigned."""

    winning_pitch: PitchResponse
    losing_pitches: List[PitchResponse] = Field(default_factory=list)
    request: ServiceRequestResponse

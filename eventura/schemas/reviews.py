from datetime import datetime
from typing import Optional

from .common import CamelModel


class ReviewCreate(CamelModel):
    request_id: int
    # Range is enforced against settings in the route, so out-of-range values
    # surface as INVALID_RATING instead of a generic validation error
    rating: int
    comment: str = ""


class ReviewResponse(CamelModel):
    id: int
    request_id: int
    client_id: int
    provider_id: int
    rating: int
    comment: str = ""
    created_at: Optional[datetime] = None

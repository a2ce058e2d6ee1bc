from datetime import datetime
from typing import Optional

from .common import CamelModel


class NotificationResponse(CamelModel):
    id: int
    user_id: int
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None


class UnreadCountResponse(CamelModel):
    count: int


class MarkAllReadResponse(CamelModel):
    updated: int

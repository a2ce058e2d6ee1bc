from typing import List, Optional

from ..config import settings
from ..schemas.common import Page
from ..schemas.notifications import MarkAllReadResponse, NotificationResponse
from .auth import AuthService
from .http import ApiClient, page_params


class NotificationService:
    """The signed-in user's notification feed."""

    def __init__(self, api: ApiClient, auth: AuthService):
        self.api = api
        self.auth = auth

    async def list(
        self,
        is_read: Optional[bool] = None,
        page: int = 0,
        size: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Page[NotificationResponse]:
        params = page_params(page, size, sort)
        params["isRead"] = is_read
        data = await self.api.get("/notifications", params=params)
        return Page[NotificationResponse].model_validate(data)

    async def all(self, is_read: Optional[bool] = None) -> List[NotificationResponse]:
        page = await self.list(is_read=is_read, size=settings.max_page_size)
        return page.content

    async def unread_count(self) -> int:
        # Read from the unread listing itself so the badge always matches the feed
        page = await self.list(is_read=False, size=1)
        return page.total_elements

    async def mark_read(self, notification_id: int) -> NotificationResponse:
        await self.auth.require_active()
        data = await self.api.put(f"/notifications/{notification_id}/read")
        return NotificationResponse.model_validate(data)

    async def mark_all_read(self) -> int:
        await self.auth.require_active()
        data = await self.api.put("/notifications/read-all")
        return MarkAllReadResponse.model_validate(data).updated

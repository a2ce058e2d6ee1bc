"""
Eventura API client.

Usage::

    async with EventuraClient() as client:
        await client.auth.login("ana@eventura.io", "secret1")
        page = await client.requests.available()
"""
from typing import Optional

import httpx

from ..config import settings
from .auth import AuthService
from .http import ApiClient
from .notifications import NotificationService
from .payments import PaymentService
from .pitches import PitchService
from .reviews import ReviewService
from .service_requests import ServiceRequestService
from .session import FileSessionProvider, MemorySessionProvider, SessionProvider


def default_session() -> SessionProvider:
    if settings.session_file:
        return FileSessionProvider(settings.session_file)
    return MemorySessionProvider()


class EventuraClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[SessionProvider] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session or default_session()
        self.api = ApiClient(self.session, base_url=base_url, timeout=timeout, transport=transport)
        self.auth = AuthService(self.api)
        self.requests = ServiceRequestService(self.api, self.auth)
        self.pitches = PitchService(self.api, self.auth)
        self.payments = PaymentService(self.api, self.auth)
        self.reviews = ReviewService(self.api, self.auth)
        self.notifications = NotificationService(self.api, self.auth)

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "EventuraClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

from datetime import date

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from eventura.auth.security import get_password_hash
from eventura.client.api import EventuraClient
from eventura.client.session import MemorySessionProvider
from eventura.config import settings
from eventura.db import Base, get_db, make_engine
from eventura.main import create_app
from eventura.models.models import User
from eventura.schemas.common import AccountStatus, ServiceType, UserRole


PASSWORD = "secret123"


class CountingTransport(httpx.AsyncBaseTransport):
    """Records every request that actually leaves the client."""

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self.inner = inner
        self.calls = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        return await self.inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self.inner.aclose()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def app(db_factory, monkeypatch):
    monkeypatch.setattr(settings, "enable_metrics", False)
    monkeypatch.setattr(settings, "rate_limit", "10000/minute")
    app = create_app()

    def _get_db():
        db = db_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
async def make_client(app, anyio_backend):
    clients = []

    def _make(session=None) -> EventuraClient:
        transport = CountingTransport(httpx.ASGITransport(app=app))
        client = EventuraClient(
            base_url="http://testserver/api",
            session=session or MemorySessionProvider(),
            transport=transport,
        )
        client.transport = transport
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
def create_admin(db_factory):
    def _create(email: str = "admin@eventura.io", password: str = PASSWORD) -> int:
        db = db_factory()
        try:
            user = User(
                first_name="Ada",
                last_name="Admin",
                email=email,
                password_hash=get_password_hash(password),
                role=UserRole.ADMIN,
                account_status=AccountStatus.ACTIVE,
            )
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    return _create


async def sign_up(client: EventuraClient, email: str, role: UserRole = UserRole.CLIENT, first_name: str = "Ana"):
    await client.auth.register(first_name, "Silva", email, PASSWORD, role=role)
    await client.auth.login(email, PASSWORD)
    return client.auth.profile


async def sign_in_admin(client: EventuraClient, create_admin, email: str = "admin@eventura.io"):
    create_admin(email)
    await client.auth.login(email, PASSWORD)
    return client.auth.profile


async def post_request(client: EventuraClient, budget: float = 500.0, **overrides):
    fields = dict(
        title="Wedding catering",
        event_name="Ana & Rui",
        event_date=date(2027, 6, 12),
        location="Lisbon",
        service_type=ServiceType.CATERING,
        budget=budget,
        description="Dinner for 120 guests",
    )
    fields.update(overrides)
    return await client.requests.create(**fields)

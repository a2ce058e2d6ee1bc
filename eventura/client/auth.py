from typing import Optional

import structlog

from ..errors import AccountSuspended, EventuraError, Unauthenticated
from ..schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UpdateUserRequest, UserResponse, UserStatusUpdate
from ..schemas.common import AccountStatus, Page, UserRole
from ..services import permissions
from .http import ApiClient, build_payload, page_params
from .session import Caller, caller_from_token


logger = structlog.get_logger(__name__)


class AuthService:
    """Sign-in, session and profile operations.

    The profile from ``/users/me`` is cached against the token it was fetched with,
    so a logout or re-login while a refresh is in flight always wins.
    """

    def __init__(self, api: ApiClient):
        self.api = api
        self.session = api.session
        self._profile: Optional[UserResponse] = None
        self._profile_token: Optional[str] = None
        api.on_error(self._on_error)

    def _on_error(self, error: EventuraError) -> None:
        if isinstance(error, AccountSuspended) and self.profile is not None:
            self._profile = self._profile.model_copy(update={"account_status": AccountStatus.SUSPENDED})
        elif isinstance(error, Unauthenticated):
            self._forget_profile()

    def _forget_profile(self) -> None:
        self._profile = None
        self._profile_token = None

    @property
    def profile(self) -> Optional[UserResponse]:
        token = self.session.get_token()
        if token is None or token != self._profile_token:
            return None
        return self._profile

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.CLIENT,
        mobile_number: Optional[str] = None,
    ) -> UserResponse:
        payload = build_payload(
            RegisterRequest,
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password,
            role=role,
            mobile_number=mobile_number,
        )
        data = await self.api.post("/users/register", auth=False, json=payload)
        return UserResponse.model_validate(data)

    async def login(self, email: str, password: str) -> str:
        payload = build_payload(LoginRequest, email=email, password=password)
        data = await self.api.post("/users/login", auth=False, json=payload)
        token = TokenResponse.model_validate(data).token
        self.session.set_token(token)
        self._forget_profile()
        logger.info("signed_in", email=email)
        await self.refresh()
        return token

    def logout(self) -> None:
        self.session.clear()
        self._forget_profile()
        logger.info("signed_out")

    async def refresh(self) -> UserResponse:
        """Fetch the caller's profile. Dropped from the cache if the session changed meanwhile."""
        token = self.session.get_token()
        if not token:
            raise Unauthenticated("Please sign in first")
        data = await self.api.get("/users/me")
        profile = UserResponse.model_validate(data)
        if self.session.get_token() == token:
            self._profile = profile
            self._profile_token = token
        else:
            logger.info("profile_refresh_discarded", user_id=profile.id)
        return profile

    async def me(self) -> UserResponse:
        return self.profile or await self.refresh()

    def caller(self) -> Caller:
        """Best local guess of who is signed in, without a network call."""
        token = self.session.get_token()
        if not token:
            raise Unauthenticated("Please sign in first")
        profile = self.profile
        if profile is not None:
            return Caller(id=profile.id, role=profile.role, account_status=profile.account_status, email=profile.email)
        return caller_from_token(token)

    async def require_active(self, *roles: UserRole) -> Caller:
        if self.profile is None:
            await self.refresh()
        caller = self.caller()
        permissions.ensure_not_suspended(caller)
        if roles:
            permissions.ensure_role(caller, *roles)
        return caller

    async def update_profile(
        self,
        first_name: str,
        last_name: str,
        email: str,
        mobile_number: Optional[str] = None,
        password: Optional[str] = None,
    ) -> UserResponse:
        await self.require_active()
        payload = build_payload(
            UpdateUserRequest,
            first_name=first_name,
            last_name=last_name,
            email=email,
            mobile_number=mobile_number,
            password=password,
        )
        token = self.session.get_token()
        data = await self.api.put("/users/me", json=payload)
        profile = UserResponse.model_validate(data)
        if self.session.get_token() == token:
            self._profile = profile
            self._profile_token = token
        return profile

    async def delete_account(self) -> None:
        await self.require_active()
        await self.api.delete("/users/me")
        self.logout()

    async def get_user(self, user_id: int) -> UserResponse:
        data = await self.api.get(f"/users/{user_id}")
        return UserResponse.model_validate(data)

    async def list_users(self, page: int = 0, size: Optional[int] = None, sort: Optional[str] = None) -> Page[UserResponse]:
        params = page_params(page, size, sort)
        if self.profile is None:
            await self.refresh()
        permissions.ensure_role(self.caller(), UserRole.ADMIN)
        data = await self.api.get("/admin/users", params=params)
        return Page[UserResponse].model_validate(data)

    async def update_user_status(self, user_id: int, status: AccountStatus) -> UserResponse:
        await self.require_active(UserRole.ADMIN)
        payload = build_payload(UserStatusUpdate, status=status)
        data = await self.api.put(f"/users/{user_id}/status", json=payload)
        return UserResponse.model_validate(data)

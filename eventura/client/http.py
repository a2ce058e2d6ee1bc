"""
HTTP transport for the Eventura client.

Injects the bearer token, decodes JSON and turns every non-2xx response into a
typed :class:`~eventura.errors.EventuraError`.
"""
from typing import Any, Callable, Dict, List, Optional

import anyio
import httpx
import structlog
from pydantic import ValidationError

from ..config import settings
from ..errors import EventuraError, InvalidInput, Unauthenticated, Unknown, error_from_response
from .session import SessionProvider


logger = structlog.get_logger(__name__)

ErrorHook = Callable[[EventuraError], None]


def build_payload(model, **fields) -> Dict[str, Any]:
    """Validate a request body locally and serialize it with wire aliases."""
    try:
        obj = model(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        message = first.get("msg", "Invalid input")
        raise InvalidInput(f"{field}: {message}" if field else message)
    return obj.model_dump(by_alias=True, mode="json", exclude_none=True)


def page_params(page: int = 0, size: Optional[int] = None, sort: Optional[str] = None) -> Dict[str, Any]:
    if page < 0:
        raise InvalidInput("Page number must not be negative")
    size = settings.default_page_size if size is None else size
    if size < 1:
        raise InvalidInput("Page size must be at least 1")
    params: Dict[str, Any] = {"page": page, "size": size}
    if sort:
        params["sort"] = sort
    return params


class ApiClient:
    """Thin async wrapper over ``httpx.AsyncClient``."""

    def __init__(
        self,
        session: SessionProvider,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
        )
        self._error_hooks: List[ErrorHook] = []

    def on_error(self, hook: ErrorHook) -> None:
        self._error_hooks.append(hook)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, auth: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth:
            token = self.session.get_token()
            if not token:
                raise Unauthenticated("Please sign in first")
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        auth: bool = True,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make HTTP request to the Eventura API"""
        headers = self._headers(auth)
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        path = endpoint.lstrip("/")

        try:
            response = await self._client.request(method, path, headers=headers, json=json, params=params)
        except anyio.get_cancelled_exc_class():
            # The caller went away; the backend may still finish the write.
            logger.info("request_abandoned", method=method, endpoint=endpoint)
            raise
        except httpx.HTTPError as e:
            logger.warning("request_transport_error", method=method, endpoint=endpoint, error=str(e))
            raise Unknown(f"Could not reach the server: {e}")

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                raise Unknown("Server returned a malformed response")

        try:
            body = response.json()
        except ValueError:
            body = None
        error = error_from_response(response.status_code, body)
        logger.info(
            "request_rejected",
            method=method,
            endpoint=endpoint,
            status=response.status_code,
            code=error.code,
        )
        if isinstance(error, Unauthenticated):
            self.session.clear()
            logger.info("session_cleared", reason=error.code)
        for hook in self._error_hooks:
            hook(error)
        raise error

    async def get(self, endpoint: str, **kwargs) -> Any:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> Any:
        return await self.request("POST", endpoint, **kwargs)

    async def put(self, endpoint: str, **kwargs) -> Any:
        return await self.request("PUT", endpoint, **kwargs)

    async def delete(self, endpoint: str, **kwargs) -> Any:
        return await self.request("DELETE", endpoint, **kwargs)

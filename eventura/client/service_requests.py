from datetime import date
from typing import Iterable, Optional, Union

import structlog

from ..schemas.common import Page, RequestStatus, ServiceType, UserRole
from ..schemas.service_requests import BudgetUpdate, RequestStatusUpdate, ServiceRequestCreate, ServiceRequestResponse
from ..services import lifecycle, permissions
from .auth import AuthService
from .http import ApiClient, build_payload, page_params


logger = structlog.get_logger(__name__)

RequestRef = Union[int, ServiceRequestResponse]


def request_id_of(request: RequestRef) -> int:
    return request.id if isinstance(request, ServiceRequestResponse) else int(request)


class ServiceRequestService:
    """Create, browse and move service requests through their lifecycle.

    Operations taking a request accept either its id or a projection returned by
    an earlier call. With a projection the transition is checked locally first;
    the backend re-checks either way.
    """

    def __init__(self, api: ApiClient, auth: AuthService):
        self.api = api
        self.auth = auth

    async def create(
        self,
        title: str,
        event_name: str,
        event_date: date,
        location: str,
        service_type: ServiceType,
        budget: float,
        description: str = "",
        status: RequestStatus = RequestStatus.OPEN,
    ) -> ServiceRequestResponse:
        lifecycle.ensure_initial_status(status)
        lifecycle.validate_positive(budget, "Budget")
        payload = build_payload(
            ServiceRequestCreate,
            title=title,
            event_name=event_name,
            event_date=event_date,
            location=location,
            service_type=service_type,
            description=description,
            budget=budget,
            status=status,
        )
        await self.auth.require_active(UserRole.CLIENT)
        data = await self.api.post("/requests", json=payload)
        created = ServiceRequestResponse.model_validate(data)
        logger.info("request_created", request_id=created.id, status=created.status.value)
        return created

    async def get(self, request_id: int) -> ServiceRequestResponse:
        data = await self.api.get(f"/requests/{request_id}")
        return ServiceRequestResponse.model_validate(data)

    async def list(
        self,
        statuses: Optional[Iterable[RequestStatus]] = None,
        service_type: Optional[ServiceType] = None,
        client_id: Optional[int] = None,
        page: int = 0,
        size: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Page[ServiceRequestResponse]:
        params = page_params(page, size, sort)
        if statuses:
            params["status"] = ",".join(RequestStatus(s).value for s in statuses)
        if service_type is not None:
            params["serviceType"] = ServiceType(service_type).value
        params["clientId"] = client_id
        data = await self.api.get("/requests", params=params)
        return Page[ServiceRequestResponse].model_validate(data)

    async def available(
        self,
        service_type: Optional[ServiceType] = None,
        page: int = 0,
        size: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Page[ServiceRequestResponse]:
        """Requests open for pitching. Drafts never show up here."""
        return await self.list([RequestStatus.OPEN], service_type=service_type, page=page, size=size, sort=sort)

    async def my_requests(self, page: int = 0, size: Optional[int] = None, sort: Optional[str] = None) -> Page[ServiceRequestResponse]:
        params = page_params(page, size, sort)
        data = await self.api.get("/requests/my-requests", params=params)
        return Page[ServiceRequestResponse].model_validate(data)

    async def _change_status(self, request: RequestRef, target: RequestStatus) -> ServiceRequestResponse:
        caller = await self.auth.require_active()
        if isinstance(request, ServiceRequestResponse):
            if target == RequestStatus.COMPLETED:
                permissions.ensure_can_complete(caller, request)
            else:
                permissions.ensure_owner_or_admin(caller, request.client_id)
            lifecycle.ensure_request_transition(request.status, target)
        request_id = request_id_of(request)
        payload = build_payload(RequestStatusUpdate, status=target)
        data = await self.api.put(f"/requests/{request_id}/status", json=payload)
        updated = ServiceRequestResponse.model_validate(data)
        logger.info("request_status_changed", request_id=request_id, status=updated.status.value)
        return updated

    async def publish(self, request: RequestRef) -> ServiceRequestResponse:
        return await self._change_status(request, RequestStatus.OPEN)

    async def cancel(self, request: RequestRef) -> ServiceRequestResponse:
        return await self._change_status(request, RequestStatus.CANCELLED)

    async def complete(self, request: RequestRef) -> ServiceRequestResponse:
        return await self._change_status(request, RequestStatus.COMPLETED)

    async def delete(self, request: RequestRef) -> None:
        caller = await self.auth.require_active()
        if isinstance(request, ServiceRequestResponse):
            permissions.ensure_owner_or_admin(caller, request.client_id)
            lifecycle.ensure_request_transition(request.status, RequestStatus.DELETED)
        await self.api.delete(f"/requests/{request_id_of(request)}")

    async def update_budget(self, request: RequestRef, budget: float) -> ServiceRequestResponse:
        lifecycle.validate_positive(budget, "Budget")
        caller = await self.auth.require_active()
        if isinstance(request, ServiceRequestResponse):
            permissions.ensure_owner_or_admin(caller, request.client_id)
            lifecycle.ensure_budget_editable(request.status)
        payload = build_payload(BudgetUpdate, budget=budget)
        data = await self.api.put(f"/requests/{request_id_of(request)}/budget", json=payload)
        return ServiceRequestResponse.model_validate(data)

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.security import get_active_user, get_current_user, require_roles
from ..db import get_db
from ..errors import InvalidInput
from ..models.models import ServiceRequest, User
from ..schemas.common import Page, RequestStatus, ServiceType, UserRole
from ..schemas.service_requests import (
    BudgetUpdate,
    RequestStatusUpdate,
    ServiceRequestCreate,
    ServiceRequestResponse,
)
from ..services import engagement, permissions
from ..services.pagination import PageParams, paginate


router = APIRouter(prefix="/requests", tags=["requests"])

REQUEST_SORT_COLUMNS = {
    "id": ServiceRequest.id,
    "createdAt": ServiceRequest.created_at,
    "eventDate": ServiceRequest.event_date,
    "budget": ServiceRequest.budget,
    "title": ServiceRequest.title,
    "status": ServiceRequest.status,
    "pitchCount": ServiceRequest.pitch_count,
}


def _parse_statuses(raw: Optional[List[str]]) -> List[RequestStatus]:
    # Accepts ?status=OPEN&status=ASSIGNED as well as ?status=OPEN,ASSIGNED
    out: List[RequestStatus] = []
    for chunk in raw or []:
        for part in chunk.split(","):
            part = part.strip().upper()
            if not part:
                continue
            try:
                out.append(RequestStatus(part))
            except ValueError:
                raise InvalidInput(f"Unknown status '{part}'")
    return out


@router.post("", response_model=ServiceRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: ServiceRequestCreate,
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.CLIENT)),
):
    return engagement.create_request(db, me, payload)


@router.get("", response_model=Page[ServiceRequestResponse])
def list_requests(
    params: PageParams = Depends(),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    service_type: Optional[ServiceType] = Query(None, alias="serviceType"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    q = db.query(ServiceRequest)
    statuses = _parse_statuses(status_filter)
    if statuses:
        q = q.filter(ServiceRequest.status.in_(statuses))
    if service_type:
        q = q.filter(ServiceRequest.service_type == service_type)
    if client_id is not None:
        q = q.filter(ServiceRequest.client_id == client_id)
    if not permissions.is_admin(me):
        # Drafts stay private to their owner; deleted requests are admin-only
        q = q.filter(ServiceRequest.status != RequestStatus.DELETED)
        q = q.filter(or_(ServiceRequest.status != RequestStatus.DRAFT, ServiceRequest.client_id == me.id))
    elif RequestStatus.DELETED not in statuses:
        q = q.filter(ServiceRequest.status != RequestStatus.DELETED)
    return paginate(q, params, ServiceRequestResponse, REQUEST_SORT_COLUMNS, ServiceRequest.id)


@router.get("/my-requests", response_model=Page[ServiceRequestResponse])
def my_requests(
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    q = db.query(ServiceRequest).filter(
        ServiceRequest.client_id == me.id,
        ServiceRequest.status != RequestStatus.DELETED,
    )
    return paginate(q, params, ServiceRequestResponse, REQUEST_SORT_COLUMNS, ServiceRequest.id)


@router.get("/{request_id}", response_model=ServiceRequestResponse)
def get_request(request_id: int, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return engagement.load_request(db, request_id, me)


@router.put("/{request_id}/status", response_model=ServiceRequestResponse)
def update_request_status(
    request_id: int,
    payload: RequestStatusUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_active_user),
):
    request = engagement.load_request(db, request_id, me)
    return engagement.change_request_status(db, me, request, payload.status)


@router.put("/{request_id}/budget", response_model=ServiceRequestResponse)
def update_request_budget(
    request_id: int,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_active_user),
):
    request = engagement.load_request(db, request_id, me)
    return engagement.update_budget(db, me, request, payload.budget)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_request(request_id: int, db: Session = Depends(get_db), me: User = Depends(get_active_user)):
    request = engagement.load_request(db, request_id, me)
    engagement.delete_request(db, me, request)

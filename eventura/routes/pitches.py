from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.security import get_active_user, get_current_user, require_roles
from ..db import get_db
from ..errors import NotFound
from ..models.models import Pitch, User
from ..schemas.common import Page, UserRole
from ..schemas.pitches import PitchCreate, PitchResponse, PitchSelectionResponse
from ..schemas.service_requests import ServiceRequestResponse
from ..services import engagement, permissions
from ..services.pagination import PageParams, paginate


router = APIRouter(prefix="/pitches", tags=["pitches"])

PITCH_SORT_COLUMNS = {
    "id": Pitch.id,
    "createdAt": Pitch.created_at,
    "proposedPrice": Pitch.proposed_price,
    "status": Pitch.status,
}


@router.post("", response_model=PitchResponse, status_code=status.HTTP_201_CREATED)
def submit_pitch(
    payload: PitchCreate,
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.PROVIDER)),
):
    return engagement.submit_pitch(db, me, payload)


@router.get("/mine", response_model=Page[PitchResponse])
def my_pitches(
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.PROVIDER, active=False)),
):
    q = db.query(Pitch).filter(Pitch.provider_id == me.id)
    return paginate(q, params, PitchResponse, PITCH_SORT_COLUMNS, Pitch.id)


@router.get("/request/{request_id}", response_model=Page[PitchResponse])
def pitches_for_request(
    request_id: int,
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    request = engagement.load_request(db, request_id, me)
    q = db.query(Pitch).filter(Pitch.request_id == request.id)
    if not permissions.is_admin(me) and request.client_id != me.id:
        # Competing providers never see each other's offers
        q = q.filter(Pitch.provider_id == me.id)
    return paginate(q, params, PitchResponse, PITCH_SORT_COLUMNS, Pitch.id, default_sort="createdAt,asc")


@router.get("/{pitch_id}", response_model=PitchResponse)
def get_pitch(pitch_id: int, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    pitch = db.get(Pitch, pitch_id)
    if pitch is None:
        raise NotFound("Pitch not found")
    if not (permissions.is_admin(me) or pitch.provider_id == me.id or pitch.request.client_id == me.id):
        raise NotFound("Pitch not found")
    return pitch


@router.post("/{pitch_id}/select", response_model=PitchSelectionResponse)
def select_pitch(pitch_id: int, db: Session = Depends(get_db), me: User = Depends(get_active_user)):
    winner, losers, request = engagement.select_pitch(db, me, pitch_id)
    return PitchSelectionResponse(
        winning_pitch=PitchResponse.model_validate(winner),
        losing_pitches=[PitchResponse.model_validate(p) for p in losers],
        request=ServiceRequestResponse.model_validate(request),
    )

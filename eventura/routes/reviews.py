from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..errors import NotFound
from ..models.models import Review, User
from ..schemas.common import Page, UserRole
from ..schemas.reviews import ReviewCreate, ReviewResponse
from ..services import engagement
from ..services.pagination import PageParams, paginate


router = APIRouter(prefix="/reviews", tags=["reviews"])

REVIEW_SORT_COLUMNS = {
    "id": Review.id,
    "createdAt": Review.created_at,
    "rating": Review.rating,
}


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    me: User = Depends(require_roles(UserRole.CLIENT)),
):
    return engagement.create_review(db, me, payload)


@router.get("/request/{request_id}", response_model=ReviewResponse)
def review_for_request(request_id: int, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    request = engagement.load_request(db, request_id, me)
    review = db.query(Review).filter(Review.request_id == request.id).first()
    if review is None:
        raise NotFound("No review found for this request")
    return review


@router.get("/provider/{provider_id}", response_model=Page[ReviewResponse])
def provider_reviews(
    provider_id: int,
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    q = db.query(Review).filter(Review.provider_id == provider_id)
    return paginate(q, params, ReviewResponse, REVIEW_SORT_COLUMNS, Review.id)

from typing import Optional

import structlog

from ..config import settings
from ..errors import Forbidden
from ..schemas.common import Page, UserRole
from ..schemas.reviews import ReviewCreate, ReviewResponse
from ..schemas.service_requests import ServiceRequestResponse
from ..services import lifecycle
from .auth import AuthService
from .http import ApiClient, build_payload, page_params
from .service_requests import RequestRef, request_id_of


logger = structlog.get_logger(__name__)


class ReviewService:
    def __init__(self, api: ApiClient, auth: AuthService):
        self.api = api
        self.auth = auth

    async def create_review(self, request: RequestRef, rating: int, comment: str = "") -> ReviewResponse:
        """Review a COMPLETED request. Rating is range-checked before anything else."""
        lifecycle.validate_rating(rating, settings.rating_min, settings.rating_max)
        caller = await self.auth.require_active(UserRole.CLIENT)
        if isinstance(request, ServiceRequestResponse):
            if request.client_id != caller.id:
                raise Forbidden("Only the request owner can review it")
            lifecycle.ensure_reviewable(request.status)
        payload = build_payload(ReviewCreate, request_id=request_id_of(request), rating=rating, comment=comment or "")
        data = await self.api.post("/reviews", json=payload)
        review = ReviewResponse.model_validate(data)
        logger.info("review_created", review_id=review.id, request_id=review.request_id, rating=review.rating)
        return review

    async def review_for_request(self, request: RequestRef) -> ReviewResponse:
        data = await self.api.get(f"/reviews/request/{request_id_of(request)}")
        return ReviewResponse.model_validate(data)

    async def provider_reviews(
        self,
        provider_id: int,
        page: int = 0,
        size: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Page[ReviewResponse]:
        params = page_params(page, size, sort)
        data = await self.api.get(f"/reviews/provider/{provider_id}", params=params)
        return Page[ReviewResponse].model_validate(data)

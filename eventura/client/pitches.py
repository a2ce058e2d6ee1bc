from typing import Optional, Union

import structlog

from ..errors import Forbidden
from ..schemas.common import Page, PitchStatus, UserRole
from ..schemas.pitches import PitchCreate, PitchResponse, PitchSelectionResponse
from ..schemas.service_requests import ServiceRequestResponse
from ..services import lifecycle
from .auth import AuthService
from .http import ApiClient, build_payload, page_params
from .service_requests import RequestRef, request_id_of


logger = structlog.get_logger(__name__)

PitchRef = Union[int, PitchResponse]


class PitchService:
    def __init__(self, api: ApiClient, auth: AuthService):
        self.api = api
        self.auth = auth

    async def submit_pitch(self, request: RequestRef, pitch_details: str, proposed_price: float) -> PitchResponse:
        """Pitch on an OPEN request. One pitch per provider per request."""
        await self.auth.require_active(UserRole.PROVIDER)
        lifecycle.validate_positive(proposed_price, "Proposed price")
        if isinstance(request, ServiceRequestResponse):
            lifecycle.ensure_open_for_pitches(request.status)
        payload = build_payload(
            PitchCreate,
            request_id=request_id_of(request),
            pitch_details=(pitch_details or "").strip(),
            proposed_price=proposed_price,
        )
        data = await self.api.post("/pitches", json=payload)
        pitch = PitchResponse.model_validate(data)
        logger.info("pitch_submitted", pitch_id=pitch.id, request_id=pitch.request_id)
        return pitch

    async def select_pitch(self, pitch: PitchRef, request: Optional[ServiceRequestResponse] = None) -> PitchSelectionResponse:
        """Accept a pitch. Siblings lose and the request becomes ASSIGNED in one step."""
        caller = await self.auth.require_active(UserRole.CLIENT)
        if isinstance(pitch, PitchResponse):
            if request is not None:
                if request.client_id != caller.id:
                    raise Forbidden("Only the request owner can select a pitch")
                lifecycle.ensure_selectable(request.status, pitch.status)
            else:
                lifecycle.ensure_pitch_transition(pitch.status, PitchStatus.WIN)
        pitch_id = pitch.id if isinstance(pitch, PitchResponse) else int(pitch)
        data = await self.api.post(f"/pitches/{pitch_id}/select")
        outcome = PitchSelectionResponse.model_validate(data)
        logger.info(
            "pitch_selected",
            pitch_id=outcome.winning_pitch.id,
            request_id=outcome.request.id,
            losers=len(outcome.losing_pitches),
        )
        return outcome

    async def get_pitch(self, pitch_id: int) -> PitchResponse:
        data = await self.api.get(f"/pitches/{pitch_id}")
        return PitchResponse.model_validate(data)

    async def get_my_pitches(self, page: int = 0, size: Optional[int] = None, sort: Optional[str] = None) -> Page[PitchResponse]:
        params = page_params(page, size, sort)
        data = await self.api.get("/pitches/mine", params=params)
        return Page[PitchResponse].model_validate(data)

    async def pitches_for_request(
        self,
        request: RequestRef,
        page: int = 0,
        size: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Page[PitchResponse]:
        params = page_params(page, size, sort)
        data = await self.api.get(f"/pitches/request/{request_id_of(request)}", params=params)
        return Page[PitchResponse].model_validate(data)

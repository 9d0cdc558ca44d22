from typing import List, Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends

from marketapi.core.auth_middleware import get_current_active_user, get_current_user_optional
from marketapi.deps import get_event_service
from marketapi.schemas.event import (
    AvailableEvent,
    EventDetail,
    FirstComeRequest,
    Participation,
    ParticipationResponse,
    QuizSubmitRequest,
    QuizSubmitResponse,
)
from marketapi.schemas.user import User as UserSchema
from marketapi.services.event_service import EventService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=List[AvailableEvent])
@inject
def list_available_events(
    current_user: UserSchema = Depends(get_current_active_user),
    event_service: EventService = Depends(get_event_service),
) -> List[AvailableEvent]:
    return event_service.list_available(current_user.id)


@router.get("/participations/mine", response_model=List[Participation])
@inject
def my_participations(
    current_user: UserSchema = Depends(get_current_active_user),
    event_service: EventService = Depends(get_event_service),
) -> List[Participation]:
    return event_service.my_participations(current_user.id)


@router.get("/{event_id}", response_model=EventDetail)
@inject
def get_event(
    event_id: int,
    current_user: Optional[UserSchema] = Depends(get_current_user_optional),
    event_service: EventService = Depends(get_event_service),
) -> EventDetail:
    """이벤트 상세 - 퀴즈 정답은 포함되지 않음"""
    return event_service.get_event(event_id, current_user.id if current_user else None)


@router.post("/{event_id}/quiz", response_model=QuizSubmitResponse)
@inject
def submit_quiz(
    event_id: int,
    request: QuizSubmitRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    event_service: EventService = Depends(get_event_service),
) -> QuizSubmitResponse:
    return event_service.submit_quiz(current_user.id, event_id, request)


@router.post("/{event_id}/participate", response_model=ParticipationResponse)
@inject
async def participate(
    event_id: int,
    request: FirstComeRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    event_service: EventService = Depends(get_event_service),
) -> ParticipationResponse:
    """
    선착순/댓글 이벤트 참여

    HTTP Status:
        200: 참여 완료 (순번, 지급 포인트, 승인 대기 여부)
        409: 정원 마감 (EVENT_FULL) / 이미 참여 (ALREADY_DONE) / 진행 중 아님
        422: 댓글 누락 또는 최소 글자 수 미달
    """
    return await event_service.participate_first_come(
        current_user.id, event_id, request.comment
    )

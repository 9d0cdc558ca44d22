"""
관리자 API 라우터

모든 엔드포인트는 role=admin 계정만 호출할 수 있습니다.

- 포인트: 조정, 전체 정합성 검증
- 이벤트: 생성/수정/상태 전이, 퀴즈 문제 추가/AI 생성, 참여 심사
- 메시지: 공지 발송, 문의 목록/답변
"""

import logging
from typing import List, Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Query, status

from marketapi.core.auth_middleware import require_admin
from marketapi.deps import get_admin_event_service, get_message_service, get_point_service
from marketapi.models.event import EventStatus
from marketapi.schemas.event import (
    ApprovalRequest,
    ApprovalResponse,
    Event,
    EventCreateRequest,
    EventUpdateRequest,
    Participation,
    QuizGenerateRequest,
    QuizQuestion,
    QuizQuestionDraft,
    QuizQuestionsCreateRequest,
)
from marketapi.schemas.message import Message, NoticeCreateRequest, ReplyRequest
from marketapi.schemas.points import PointsIntegrityCheckResponse, PointTransactionEntry, AdminChargeRequest
from marketapi.schemas.user import User as UserSchema
from marketapi.services.admin_event_service import AdminEventService
from marketapi.services.message_service import MessageService
from marketapi.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# 포인트


@router.post("/points/charge", response_model=PointTransactionEntry)
@inject
def charge_points(
    request: AdminChargeRequest,
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointTransactionEntry:
    """포인트 지급(양수)/차감(음수) - 잔액이 음수가 되면 400"""
    return point_service.admin_charge(current_user.id, request)


@router.get("/points/integrity", response_model=PointsIntegrityCheckResponse)
@inject
def verify_global_integrity(
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_global_integrity()


@router.get("/points/integrity/{user_id}", response_model=PointsIntegrityCheckResponse)
@inject
def verify_user_integrity(
    user_id: int,
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_user_integrity(user_id)


# 이벤트


@router.get("/events", response_model=List[Event])
@inject
def list_events(
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> List[Event]:
    return admin_event_service.list_events(event_status.value if event_status else None)


@router.post("/events", response_model=Event, status_code=status.HTTP_201_CREATED)
@inject
def create_event(
    request: EventCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> Event:
    return admin_event_service.create_event(current_user.id, request)


@router.patch("/events/{event_id}", response_model=Event)
@inject
def update_event(
    event_id: int,
    request: EventUpdateRequest,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> Event:
    return admin_event_service.update_event(event_id, request)


@router.post("/events/{event_id}/schedule", response_model=Event)
@inject
def schedule_event(
    event_id: int,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> Event:
    return admin_event_service.schedule_event(event_id)


@router.post("/events/{event_id}/activate", response_model=Event)
@inject
def activate_event(
    event_id: int,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> Event:
    return admin_event_service.activate_event(event_id)


@router.post("/events/{event_id}/end", response_model=Event)
@inject
def end_event(
    event_id: int,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> Event:
    return admin_event_service.end_event(event_id)


@router.get("/events/{event_id}/questions", response_model=List[QuizQuestion])
@inject
def list_questions(
    event_id: int,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> List[QuizQuestion]:
    return admin_event_service.list_questions(event_id)


@router.post("/events/{event_id}/questions", response_model=List[QuizQuestion])
@inject
def add_questions(
    event_id: int,
    request: QuizQuestionsCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> List[QuizQuestion]:
    return admin_event_service.add_questions(event_id, request.questions)


@router.post("/quiz/generate", response_model=List[QuizQuestionDraft])
@inject
async def generate_questions(
    request: QuizGenerateRequest,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> List[QuizQuestionDraft]:
    """AI 퀴즈 초안 생성 - 저장되지 않음"""
    return await admin_event_service.generate_questions(request)


@router.get("/events/{event_id}/participations", response_model=List[Participation])
@inject
def list_participations(
    event_id: int,
    pending_only: bool = Query(False),
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> List[Participation]:
    return admin_event_service.list_participations(event_id, pending_only)


@router.post("/participations/{participation_id}/decision", response_model=ApprovalResponse)
@inject
def decide_participation(
    participation_id: int,
    request: ApprovalRequest,
    current_user: UserSchema = Depends(require_admin),
    admin_event_service: AdminEventService = Depends(get_admin_event_service),
) -> ApprovalResponse:
    """댓글 이벤트 참여 승인/거절 (1회 한정, 재심사는 409)"""
    return admin_event_service.approve_participation(
        current_user.id, participation_id, request
    )


# 메시지


@router.post("/notices", response_model=Message, status_code=status.HTTP_201_CREATED)
@inject
def send_notice(
    request: NoticeCreateRequest,
    current_user: UserSchema = Depends(require_admin),
    message_service: MessageService = Depends(get_message_service),
) -> Message:
    return message_service.send_notice(current_user.id, request)


@router.get("/inquiries", response_model=List[Message])
@inject
def list_inquiries(
    current_user: UserSchema = Depends(require_admin),
    message_service: MessageService = Depends(get_message_service),
) -> List[Message]:
    return message_service.admin_inquiries()


@router.post("/inquiries/{message_id}/reply", response_model=Message)
@inject
def reply_inquiry(
    message_id: int,
    request: ReplyRequest,
    current_user: UserSchema = Depends(require_admin),
    message_service: MessageService = Depends(get_message_service),
) -> Message:
    return message_service.reply(current_user.id, message_id, request)

import enum
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.core.exceptions import (
    AlreadyDecidedError,
    BaseAPIException,
    InternalServerError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.event import (
    Difficulty,
    EventStatus,
    EventType,
    QuestionType,
)
from marketapi.models.points import PointTransactionType
from marketapi.repositories.event_repository import EventRepository
from marketapi.schemas.event import (
    ApprovalRequest,
    ApprovalResponse,
    Event,
    EventCreateRequest,
    EventUpdateRequest,
    Participation,
    QuizGenerateRequest,
    QuizQuestion,
    QuizQuestionCreate,
    QuizQuestionDraft,
)
from marketapi.services.ai_service import AiService
from marketapi.services.point_service import PointService

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = [EventStatus.DRAFT.value, EventStatus.SCHEDULED.value]
OX_ANSWERS = {"O", "X"}


def comment_payout(min_points: int, max_points: int, score: int) -> int:
    """댓글 점수(0~100)를 [min, max] 포인트로 환산 - 반올림(half-up)"""
    return int(math.floor(min_points + score / 100 * (max_points - min_points) + 0.5))


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.value if isinstance(value, enum.Enum) else value
        for key, value in fields.items()
    }


def validate_event_fields(fields: Dict[str, Any]) -> None:
    """이벤트 생성/수정 공통 검증 (fields는 DB 저장 형태)"""
    if not (fields.get("title") or "").strip():
        raise ValidationError("이벤트 제목을 입력해주세요.")

    start_at, end_at = fields.get("start_at"), fields.get("end_at")
    if start_at is None or end_at is None:
        raise ValidationError("이벤트 시작/종료 시각을 입력해주세요.")
    if _as_aware(end_at) <= _as_aware(start_at):
        raise ValidationError("종료 시각은 시작 시각 이후여야 합니다.")

    max_participants = fields.get("max_participants")
    if max_participants is not None and max_participants < 1:
        raise ValidationError("참여 인원 제한은 1명 이상이어야 합니다.")

    if fields.get("type") == EventType.COMMENT.value:
        if not (fields.get("review_criteria") or "").strip():
            raise ValidationError("댓글 이벤트는 심사 기준이 필요합니다.")
        if fields.get("min_length") is None or fields["min_length"] < 1:
            raise ValidationError("댓글 이벤트는 최소 글자 수가 필요합니다.")
        min_points, max_points = fields.get("min_points"), fields.get("max_points")
        if min_points is None or max_points is None:
            raise ValidationError("댓글 이벤트는 최소/최대 포인트가 필요합니다.")
        if min_points < 0 or min_points > max_points:
            raise ValidationError("최소 포인트는 0 이상, 최대 포인트 이하여야 합니다.")


def validate_question(question: QuizQuestionCreate) -> Dict[str, Any]:
    """문제 검증 후 저장 형태로 변환"""
    answer = question.correct_answer.strip()
    choices = question.choices
    if question.question_type == QuestionType.OX:
        answer = answer.upper()
        if answer not in OX_ANSWERS:
            raise ValidationError("OX 문제의 정답은 O 또는 X여야 합니다.")
        choices = None
    else:
        if not choices:
            raise ValidationError("객관식 문제는 선택지가 필요합니다.")
        if answer not in choices:
            raise ValidationError("정답이 선택지에 없습니다.")

    return {
        "question": question.question.strip(),
        "question_type": question.question_type.value,
        "correct_answer": answer,
        "choices": choices,
        "explanation": question.explanation,
        "grade": question.grade,
        "subject": question.subject,
    }


class AdminEventService:
    """관리자 이벤트 작성/상태 관리/심사 서비스

    상태 전이: draft → scheduled → active → ended (draft → active 허용)
    종료된 이벤트는 다시 활성화할 수 없습니다.
    """

    def __init__(self, db: Session, ai_service: Optional[AiService] = None):
        self.db = db
        self.event_repo = EventRepository(db)
        self.point_service = PointService(db)
        self.ai_service = ai_service or AiService(settings)

    def _get_event(self, event_id: int) -> Event:
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError("이벤트를 찾을 수 없습니다.")
        return event

    def list_events(self, status: Optional[str] = None) -> List[Event]:
        return self.event_repo.list_by_status(status)

    def create_event(self, admin_id: int, request: EventCreateRequest) -> Event:
        fields = _plain(request.model_dump())
        if fields["status"] not in EDITABLE_STATUSES:
            raise ValidationError("이벤트는 작성 중 또는 공개 예정 상태로만 생성할 수 있습니다.")

        if fields.get("points_reward") is None:
            fields["points_reward"] = settings.DEFAULT_EVENT_POINTS
        if fields["type"] == EventType.QUIZ.value:
            fields["quiz_type"] = fields.get("quiz_type") or QuestionType.OX.value
            fields["difficulty"] = fields.get("difficulty") or Difficulty.NORMAL.value

        validate_event_fields(fields)
        event = self.event_repo.create(created_by=admin_id, **fields)
        logger.info(f"Event {event.id} ({event.type.value}) created by admin {admin_id}")
        return event

    def update_event(self, event_id: int, request: EventUpdateRequest) -> Event:
        existing = self._get_event(event_id)
        if existing.status.value not in EDITABLE_STATUSES:
            raise InvalidStateError("진행 중이거나 종료된 이벤트는 수정할 수 없습니다.")

        changes = _plain(request.model_dump(exclude_unset=True))
        merged = _plain(existing.model_dump())
        merged.update(changes)
        validate_event_fields(merged)

        event = self.event_repo.update(event_id, **changes)
        logger.info(f"Event {event_id} updated: {sorted(changes)}")
        return event

    def _transition(self, event_id: int, from_statuses: List[str], to_status: EventStatus) -> Event:
        event = self._get_event(event_id)
        if not self.event_repo.transition_status(event_id, from_statuses, to_status.value):
            raise InvalidStateError(
                f"'{event.status.value}' 상태에서는 '{to_status.value}'(으)로 변경할 수 없습니다."
            )
        logger.info(f"Event {event_id}: {event.status.value} -> {to_status.value}")
        return self._get_event(event_id)

    def schedule_event(self, event_id: int) -> Event:
        return self._transition(event_id, [EventStatus.DRAFT.value], EventStatus.SCHEDULED)

    def activate_event(self, event_id: int) -> Event:
        return self._transition(event_id, EDITABLE_STATUSES, EventStatus.ACTIVE)

    def end_event(self, event_id: int) -> Event:
        return self._transition(event_id, [EventStatus.ACTIVE.value], EventStatus.ENDED)

    def add_questions(
        self, event_id: int, questions: List[QuizQuestionCreate]
    ) -> List[QuizQuestion]:
        event = self._get_event(event_id)
        if event.type != EventType.QUIZ:
            raise InvalidStateError("퀴즈 이벤트에만 문제를 추가할 수 있습니다.")
        if event.status == EventStatus.ENDED:
            raise InvalidStateError("종료된 이벤트에는 문제를 추가할 수 없습니다.")

        rows = [validate_question(question) for question in questions]
        saved = self.event_repo.add_questions(event_id, rows)
        logger.info(f"Added {len(saved)} questions to event {event_id}")
        return saved

    def list_questions(self, event_id: int) -> List[QuizQuestion]:
        self._get_event(event_id)
        return self.event_repo.list_questions(event_id)

    async def generate_questions(self, params: QuizGenerateRequest) -> List[QuizQuestionDraft]:
        """AI 문제 초안 - 저장하지 않음 (add_questions로 저장)"""
        return await self.ai_service.generate_quiz_questions(params)

    def list_participations(self, event_id: int, pending_only: bool = False) -> List[Participation]:
        self._get_event(event_id)
        return self.event_repo.list_participations(event_id, pending_only)

    def approve_participation(
        self, admin_id: int, participation_id: int, request: ApprovalRequest
    ) -> ApprovalResponse:
        """
        댓글 이벤트 참여 심사 (1회 한정)

        승인 시 점수(관리자 조정 점수 우선, 없으면 AI 점수)를 min~max 포인트로 환산해 지급합니다.
        거절 시 포인트는 지급되지 않습니다.
        """
        participation = self.event_repo.get_participation(participation_id)
        if not participation:
            raise NotFoundError("참여 기록을 찾을 수 없습니다.")
        if participation.admin_approved is not None:
            raise AlreadyDecidedError()

        event = self._get_event(participation.event_id)
        if event.type != EventType.COMMENT:
            raise InvalidStateError("댓글 이벤트 참여만 심사할 수 있습니다.")

        score: Optional[int] = None
        points = 0
        if request.approved:
            score = (
                request.adjusted_score
                if request.adjusted_score is not None
                else participation.ai_score or 0
            )
            points = comment_payout(event.min_points or 0, event.max_points or 0, score)

        try:
            if not self.event_repo.decide_once(
                participation_id, request.approved, request.adjusted_score, points
            ):
                raise AlreadyDecidedError()
            entry = None
            if points > 0:
                entry = self.point_service.apply(
                    user_id=participation.user_id,
                    amount=points,
                    type=PointTransactionType.EVENT,
                    description=f"{event.title} 댓글 이벤트 보상",
                    related_id=participation_id,
                    ref_id=f"event_approval_{participation_id}",
                )
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Approval failed for participation {participation_id}: {str(e)}")
            raise InternalServerError("심사 처리에 실패했습니다.")

        logger.info(
            f"Admin {admin_id} {'approved' if request.approved else 'rejected'} "
            f"participation {participation_id} (+{points}P)"
        )
        return ApprovalResponse(
            participation_id=participation_id,
            approved=request.approved,
            score=score,
            points_awarded=points,
            user_new_balance=entry.balance_after if entry else None,
        )

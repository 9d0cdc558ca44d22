import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.core.exceptions import (
    AlreadyParticipatedError,
    BaseAPIException,
    EventFullError,
    InternalServerError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.event import EventStatus, EventType, MissionType
from marketapi.models.points import PointTransactionType
from marketapi.repositories.event_repository import EventRepository
from marketapi.repositories.points_repository import PointsRepository
from marketapi.repositories.user_repository import UserRepository
from marketapi.schemas.event import (
    AvailableEvent,
    CommentScore,
    Event,
    EventDetail,
    Participation,
    ParticipationResponse,
    QuizQuestion,
    QuizQuestionPublic,
    QuizSubmitRequest,
    QuizSubmitResponse,
)
from marketapi.services.ai_service import AiService
from marketapi.services.point_service import PointService

logger = logging.getLogger(__name__)


def normalize_answer(answer: Optional[str]) -> str:
    return (answer or "").strip().lower()


def grade_quiz(questions: List[QuizQuestion], answers: Dict[int, str]) -> int:
    """정답 수 계산 - 공백 제거, 대소문자 무시"""
    return sum(
        1
        for question in questions
        if normalize_answer(answers.get(question.id)) == normalize_answer(question.correct_answer)
    )


def participation_ref_id(event_id: int, user_id: int) -> str:
    return f"event_{event_id}_{user_id}"


class EventService:
    """이벤트 참여 서비스 (퀴즈 / 선착순 / 댓글)"""

    def __init__(self, db: Session, ai_service: Optional[AiService] = None):
        self.db = db
        self.event_repo = EventRepository(db)
        self.user_repo = UserRepository(db)
        self.points_repo = PointsRepository(db)
        self.point_service = PointService(db)
        self.ai_service = ai_service or AiService(settings)

    def _get_active_event(self, event_id: int) -> Event:
        event = self.event_repo.get_by_id(event_id)
        if not event or event.status == EventStatus.DRAFT:
            raise NotFoundError("이벤트를 찾을 수 없습니다.")
        if event.status != EventStatus.ACTIVE:
            raise InvalidStateError("진행 중인 이벤트가 아닙니다.")
        return event

    def list_available(self, user_id: int) -> List[AvailableEvent]:
        """
        진행 중 이벤트 목록

        대상 학년이 지정된 이벤트는 사용자의 관심 학년과 겹칠 때만 노출합니다.
        관심 학년을 설정하지 않은 사용자에게는 모두 노출합니다.
        """
        events = self.event_repo.list_by_status(EventStatus.ACTIVE.value)
        grades = set(self.user_repo.get_interests(user_id).grades)
        participated = self.event_repo.participated_event_ids(user_id)

        available = []
        for event in events:
            if grades and event.target_grades and not grades.intersection(event.target_grades):
                continue
            available.append(AvailableEvent(event=event, participated=event.id in participated))
        return available

    def get_event(self, event_id: int, user_id: Optional[int] = None) -> EventDetail:
        """이벤트 상세 - 참여자에게는 정답/해설을 제외한 문제만 제공"""
        event = self.event_repo.get_by_id(event_id)
        if not event or event.status == EventStatus.DRAFT:
            raise NotFoundError("이벤트를 찾을 수 없습니다.")

        questions = []
        if event.type == EventType.QUIZ:
            questions = [
                QuizQuestionPublic.model_validate(question.model_dump())
                for question in self.event_repo.list_questions(event_id)
            ]
        participated = bool(user_id) and self.event_repo.has_participated(event_id, user_id)
        return EventDetail(event=event, questions=questions, participated=participated)

    def _balance_after(self, user_id: int, paid_entry) -> int:
        if paid_entry is not None:
            return paid_entry.balance_after
        return self.points_repo.get_user_balance(user_id)

    def submit_quiz(
        self, user_id: int, event_id: int, request: QuizSubmitRequest
    ) -> QuizSubmitResponse:
        """퀴즈 제출 - 전부 맞혀야 보상 지급, 이벤트당 1회"""
        event = self._get_active_event(event_id)
        if event.type != EventType.QUIZ:
            raise InvalidStateError("퀴즈 이벤트가 아닙니다.")
        if self.event_repo.has_participated(event_id, user_id):
            raise AlreadyParticipatedError()

        questions = self.event_repo.list_questions(event_id)
        if not questions:
            raise ValidationError("등록된 문제가 없습니다.")

        correct_count = grade_quiz(questions, request.answers)
        all_correct = correct_count == len(questions)
        points_earned = event.points_reward if all_correct else 0

        try:
            if self.event_repo.try_claim_slot(event_id) is None:
                raise EventFullError()
            self.event_repo.create_participation(
                event_id=event_id,
                user_id=user_id,
                answers={str(key): value for key, value in request.answers.items()},
                correct_count=correct_count,
                points_earned=points_earned,
            )
            entry = None
            if points_earned > 0:
                entry = self.point_service.apply(
                    user_id=user_id,
                    amount=points_earned,
                    type=PointTransactionType.EVENT,
                    description=f"{event.title} 퀴즈 정답",
                    related_id=event_id,
                    ref_id=participation_ref_id(event_id, user_id),
                )
            new_balance = self._balance_after(user_id, entry)
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadyParticipatedError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Quiz submission failed for event {event_id}, user {user_id}: {str(e)}")
            raise InternalServerError("퀴즈 제출에 실패했습니다.")

        logger.info(
            f"User {user_id} submitted quiz {event_id}: {correct_count}/{len(questions)}, +{points_earned}P"
        )
        return QuizSubmitResponse(
            correct_count=correct_count,
            total_questions=len(questions),
            points_earned=points_earned,
            new_balance=new_balance,
        )

    def _validate_comment(self, event: Event, comment: str) -> None:
        if event.mission_type == MissionType.COMMENT_REQUIRED and not comment:
            raise ValidationError("댓글을 입력해주세요.")
        if event.type == EventType.COMMENT:
            if not comment:
                raise ValidationError("댓글을 입력해주세요.")
            if event.min_length and len(comment) < event.min_length:
                raise ValidationError(f"최소 {event.min_length}자 이상 작성해주세요.")

    async def participate_first_come(
        self, user_id: int, event_id: int, comment: Optional[str] = None
    ) -> ParticipationResponse:
        """
        선착순/댓글 이벤트 참여

        - 선착순: 정원 내에서 즉시 points_reward 지급
        - 댓글: AI 점수를 기록하고 0P, 관리자 승인 후 지급 (awaiting_approval=True)

        정원 검사와 참여 인원 증가는 조건부 UPDATE 한 번으로 처리됩니다.
        """
        event = self._get_active_event(event_id)
        if event.type == EventType.QUIZ:
            raise InvalidStateError("퀴즈 이벤트는 문제를 제출해 참여합니다.")
        if self.event_repo.has_participated(event_id, user_id):
            raise AlreadyParticipatedError()

        text = (comment or "").strip()
        self._validate_comment(event, text)

        if (
            event.max_participants is not None
            and event.current_participants >= event.max_participants
        ):
            raise EventFullError()

        is_comment_event = event.type == EventType.COMMENT
        score: Optional[CommentScore] = None
        if is_comment_event:
            # 외부 호출은 DB 트랜잭션 밖에서 수행
            score = await self.ai_service.score_comment(event.title, event.description, text)

        points_earned = 0 if is_comment_event else event.points_reward

        try:
            position = self.event_repo.try_claim_slot(event_id)
            if position is None:
                raise EventFullError()
            self.event_repo.create_participation(
                event_id=event_id,
                user_id=user_id,
                comment_text=text or None,
                ai_score=score.score if score else None,
                ai_feedback=score.feedback if score else None,
                points_earned=points_earned,
            )
            entry = None
            if points_earned > 0:
                entry = self.point_service.apply(
                    user_id=user_id,
                    amount=points_earned,
                    type=PointTransactionType.EVENT,
                    description=f"{event.title} 이벤트 참여",
                    related_id=event_id,
                    ref_id=participation_ref_id(event_id, user_id),
                )
            new_balance = self._balance_after(user_id, entry)
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadyParticipatedError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Participation failed for event {event_id}, user {user_id}: {str(e)}")
            raise InternalServerError("이벤트 참여에 실패했습니다.")

        logger.info(f"User {user_id} joined event {event_id} at position {position}")
        return ParticipationResponse(
            position=position,
            points_earned=points_earned,
            new_balance=new_balance,
            awaiting_approval=is_comment_event,
        )

    def my_participations(self, user_id: int) -> List[Participation]:
        return self.event_repo.list_user_participations(user_id)

from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import desc, func, or_, update
from sqlalchemy.orm import Session

from marketapi.models.event import (
    Event as EventModel,
    EventParticipation as ParticipationModel,
    EventStatus,
    QuizQuestion as QuizQuestionModel,
)
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.event import (
    Event as EventSchema,
    Participation as ParticipationSchema,
    QuizQuestion as QuizQuestionSchema,
)


class EventRepository(BaseRepository[EventModel, EventSchema]):
    """이벤트/퀴즈 문제/참여 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(EventModel, EventSchema, db)

    def list_by_status(self, status: Optional[str] = None) -> List[EventSchema]:
        filters = {"status": status} if status else None
        return self.find_all(filters=filters, order_by="id", descending=True)

    def transition_status(
        self, event_id: int, from_statuses: Iterable[str], to_status: str
    ) -> bool:
        """허용된 상태에서만 전이 - 조건 불일치 시 False"""
        result = self.db.execute(
            update(EventModel)
            .where(EventModel.id == event_id)
            .where(EventModel.status.in_(list(from_statuses)))
            .values(status=to_status)
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        return result.rowcount == 1

    def try_claim_slot(self, event_id: int) -> Optional[int]:
        """
        진행 중 이벤트의 참여 인원을 1 증가시키고 참여 순번을 반환

        정원이 찼거나 진행 중이 아니면 None (커밋하지 않음).
        정원 검사와 증가가 단일 UPDATE이므로 동시 요청에서도 정원을 넘지 않습니다.
        """
        result = self.db.execute(
            update(EventModel)
            .where(EventModel.id == event_id)
            .where(EventModel.status == EventStatus.ACTIVE.value)
            .where(
                or_(
                    EventModel.max_participants.is_(None),
                    EventModel.current_participants < EventModel.max_participants,
                )
            )
            .values(current_participants=EventModel.current_participants + 1)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            return None
        return (
            self.db.query(EventModel.current_participants)
            .filter(EventModel.id == event_id)
            .scalar()
        )

    # 퀴즈 문제

    def list_questions(self, event_id: int) -> List[QuizQuestionSchema]:
        rows = (
            self.db.query(QuizQuestionModel)
            .filter(QuizQuestionModel.event_id == event_id)
            .order_by(QuizQuestionModel.order_num, QuizQuestionModel.id)
            .all()
        )
        return [QuizQuestionSchema.model_validate(row) for row in rows]

    def add_questions(
        self, event_id: int, questions: List[Dict[str, Any]]
    ) -> List[QuizQuestionSchema]:
        """문제를 기존 문제 뒤에 순서대로 추가"""
        last_order = (
            self.db.query(func.max(QuizQuestionModel.order_num))
            .filter(QuizQuestionModel.event_id == event_id)
            .scalar()
        )
        next_order = (last_order or 0) + 1
        instances = []
        for offset, question in enumerate(questions):
            instance = QuizQuestionModel(
                event_id=event_id, order_num=next_order + offset, **question
            )
            self.db.add(instance)
            instances.append(instance)
        try:
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return [QuizQuestionSchema.model_validate(instance) for instance in instances]

    # 참여

    def create_participation(self, commit: bool = False, **kwargs) -> ParticipationSchema:
        participation = ParticipationModel(**kwargs)
        self.db.add(participation)
        self.db.flush()
        self.db.refresh(participation)
        if commit:
            self.db.commit()
        return ParticipationSchema.model_validate(participation)

    def get_participation(self, participation_id: int) -> Optional[ParticipationSchema]:
        row = (
            self.db.query(ParticipationModel)
            .filter(ParticipationModel.id == participation_id)
            .first()
        )
        return ParticipationSchema.model_validate(row) if row else None

    def has_participated(self, event_id: int, user_id: int) -> bool:
        return (
            self.db.query(ParticipationModel.id)
            .filter(
                ParticipationModel.event_id == event_id,
                ParticipationModel.user_id == user_id,
            )
            .first()
            is not None
        )

    def participated_event_ids(self, user_id: int) -> Set[int]:
        rows = (
            self.db.query(ParticipationModel.event_id)
            .filter(ParticipationModel.user_id == user_id)
            .all()
        )
        return {row.event_id for row in rows}

    def list_participations(
        self, event_id: int, pending_only: bool = False
    ) -> List[ParticipationSchema]:
        query = self.db.query(ParticipationModel).filter(
            ParticipationModel.event_id == event_id
        )
        if pending_only:
            query = query.filter(ParticipationModel.admin_approved.is_(None))
        rows = query.order_by(ParticipationModel.id).all()
        return [ParticipationSchema.model_validate(row) for row in rows]

    def list_user_participations(self, user_id: int) -> List[ParticipationSchema]:
        rows = (
            self.db.query(ParticipationModel)
            .filter(ParticipationModel.user_id == user_id)
            .order_by(desc(ParticipationModel.id))
            .all()
        )
        return [ParticipationSchema.model_validate(row) for row in rows]

    def decide_once(
        self,
        participation_id: int,
        approved: bool,
        adjusted_score: Optional[int],
        points_earned: int,
    ) -> bool:
        """심사 대기 상태일 때만 결정 기록 - 이미 결정된 경우 False (커밋하지 않음)"""
        result = self.db.execute(
            update(ParticipationModel)
            .where(ParticipationModel.id == participation_id)
            .where(ParticipationModel.admin_approved.is_(None))
            .values(
                admin_approved=approved,
                admin_adjusted_score=adjusted_score,
                points_earned=points_earned,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from marketapi.models.base import BaseModel, BigIntPK


class EventType(str, enum.Enum):
    QUIZ = "quiz"
    FIRST_COME = "first_come"
    COMMENT = "comment"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"  # 작성 중
    SCHEDULED = "scheduled"  # 공개 예정
    ACTIVE = "active"  # 진행 중
    ENDED = "ended"  # 종료 (재활성화 불가)


class QuestionType(str, enum.Enum):
    OX = "ox"
    MULTIPLE_CHOICE = "multiple_choice"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


class MissionType(str, enum.Enum):
    BUTTON_ONLY = "button_only"
    COMMENT_REQUIRED = "comment_required"


class Event(BaseModel):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "max_participants IS NULL OR current_participants <= max_participants",
            name="ck_events_participant_cap",
        ),
        Index("idx_events_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=EventStatus.DRAFT.value, nullable=False
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_participants: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    target_grades: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # Quiz
    quiz_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    difficulty: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Reward
    points_reward: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    # First-come
    mission_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Comment
    min_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    review_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )


class QuizQuestion(BaseModel):
    __tablename__ = "quiz_questions"
    __table_args__ = (Index("idx_quiz_questions_event", "event_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("events.id"), nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(20), nullable=False)
    correct_answer: Mapped[str] = mapped_column(String(20), nullable=False)
    choices: Mapped[Optional[Dict[str, str]]] = mapped_column(JSON, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    grade: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    order_num: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class EventParticipation(BaseModel):
    __tablename__ = "event_participations"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_participation_event_user"),
        Index("idx_participations_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("events.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    # Quiz
    answers: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    correct_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Comment
    comment_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_approved: Mapped[Optional[bool]] = mapped_column(
        Boolean, nullable=True
    )  # NULL = 심사 대기
    admin_adjusted_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # General
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

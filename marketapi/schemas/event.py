from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from marketapi.models.event import (
    Difficulty,
    EventStatus,
    EventType,
    MissionType,
    QuestionType,
)


class QuizQuestionPublic(BaseModel):
    """참여자에게 공개되는 문제 (정답/해설 제외)"""

    id: int
    question: str
    question_type: QuestionType
    choices: Optional[Dict[str, str]] = None
    order_num: int = 0

    class Config:
        from_attributes = True


class QuizQuestion(QuizQuestionPublic):
    """관리자용 문제 (정답 포함)"""

    event_id: int
    correct_answer: str
    explanation: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None


class Event(BaseModel):
    id: int
    type: EventType
    title: str
    description: Optional[str] = None
    status: EventStatus
    start_at: datetime
    end_at: datetime
    max_participants: Optional[int] = None
    current_participants: int = 0
    target_grades: Optional[List[str]] = None
    quiz_type: Optional[QuestionType] = None
    difficulty: Optional[Difficulty] = None
    points_reward: int
    mission_type: Optional[MissionType] = None
    min_length: Optional[int] = None
    min_points: Optional[int] = None
    max_points: Optional[int] = None
    review_criteria: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventDetail(BaseModel):
    event: Event
    questions: List[QuizQuestionPublic] = Field(default_factory=list)
    participated: bool = False


class AvailableEvent(BaseModel):
    event: Event
    participated: bool = False


class EventCreateRequest(BaseModel):
    type: EventType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: EventStatus = EventStatus.DRAFT
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    max_participants: Optional[int] = None
    target_grades: Optional[List[str]] = None
    quiz_type: Optional[QuestionType] = None
    difficulty: Optional[Difficulty] = None
    points_reward: Optional[int] = Field(None, ge=0)
    mission_type: Optional[MissionType] = None
    min_length: Optional[int] = None
    min_points: Optional[int] = None
    max_points: Optional[int] = None
    review_criteria: Optional[str] = None


class EventUpdateRequest(BaseModel):
    """작성 중/공개 예정 이벤트 수정 - 보낸 항목만 반영"""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    max_participants: Optional[int] = None
    target_grades: Optional[List[str]] = None
    quiz_type: Optional[QuestionType] = None
    difficulty: Optional[Difficulty] = None
    points_reward: Optional[int] = Field(None, ge=0)
    mission_type: Optional[MissionType] = None
    min_length: Optional[int] = None
    min_points: Optional[int] = None
    max_points: Optional[int] = None
    review_criteria: Optional[str] = None


class QuizQuestionCreate(BaseModel):
    question: str = Field(..., min_length=1)
    question_type: QuestionType
    correct_answer: str = Field(..., min_length=1)
    choices: Optional[Dict[str, str]] = None
    explanation: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None


class QuizQuestionsCreateRequest(BaseModel):
    questions: List[QuizQuestionCreate] = Field(..., min_length=1)


class QuizGenerateRequest(BaseModel):
    grade: str = Field(..., description="예: elementary_3, middle_1, high_2")
    subject: str = Field(..., description="예: math, korean, english")
    count: int = Field(5, ge=1, le=20)
    difficulty: Difficulty = Difficulty.NORMAL
    type: Literal["ox", "multiple_choice", "mixed"] = "mixed"


class QuizQuestionDraft(BaseModel):
    """AI가 생성한 문제 초안 - 관리자 검토 전까지 저장되지 않음"""

    question: str
    question_type: QuestionType
    correct_answer: str
    choices: Optional[Dict[str, str]] = None
    explanation: str = ""


class QuizSubmitRequest(BaseModel):
    answers: Dict[int, str] = Field(..., description="문제 ID → 답안")


class QuizSubmitResponse(BaseModel):
    success: bool = True
    correct_count: int
    total_questions: int
    points_earned: int
    new_balance: int


class FirstComeRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class ParticipationResponse(BaseModel):
    success: bool = True
    position: int = Field(..., description="참여 순번")
    points_earned: int
    new_balance: int
    awaiting_approval: bool = False


class Participation(BaseModel):
    id: int
    event_id: int
    user_id: int
    answers: Optional[Dict[str, str]] = None
    correct_count: Optional[int] = None
    comment_text: Optional[str] = None
    ai_score: Optional[int] = None
    ai_feedback: Optional[str] = None
    admin_approved: Optional[bool] = None
    admin_adjusted_score: Optional[int] = None
    points_earned: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalRequest(BaseModel):
    approved: bool
    adjusted_score: Optional[int] = Field(None, ge=0, le=100)


class ApprovalResponse(BaseModel):
    success: bool = True
    participation_id: int
    approved: bool
    score: Optional[int] = None
    points_awarded: int
    user_new_balance: Optional[int] = None


class CommentScore(BaseModel):
    score: int = Field(..., ge=0, le=100)
    feedback: str
    relevance: int = Field(..., ge=0, le=25)
    quality: int = Field(..., ge=0, le=25)
    length: int = Field(..., ge=0, le=25)
    creativity: int = Field(..., ge=0, le=25)

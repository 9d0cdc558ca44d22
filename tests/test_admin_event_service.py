import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from marketapi.config import settings
from marketapi.core.exceptions import (
    AlreadyDecidedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.points import PointTransaction
from marketapi.schemas.event import (
    ApprovalRequest,
    EventCreateRequest,
    EventUpdateRequest,
    QuizGenerateRequest,
    QuizQuestionCreate,
)
from marketapi.services.admin_event_service import AdminEventService, comment_payout
from marketapi.services.event_service import EventService

NOW = datetime.now(timezone.utc)


def event_request(**overrides) -> EventCreateRequest:
    fields = {
        "type": "first_come",
        "title": "봄맞이 선착순",
        "start_at": NOW,
        "end_at": NOW + timedelta(days=3),
    }
    fields.update(overrides)
    return EventCreateRequest(**fields)


def comment_request(**overrides) -> EventCreateRequest:
    fields = {
        "type": "comment",
        "title": "수업 후기 댓글 이벤트",
        "review_criteria": "구체적인 수업 경험",
        "min_length": 10,
        "min_points": 10,
        "max_points": 50,
    }
    fields.update(overrides)
    return event_request(**fields)


class TestCommentPayout:
    @pytest.mark.parametrize(
        "score, expected",
        [(0, 10), (100, 50), (80, 42), (50, 30), (1, 10), (2, 11)],
    )
    def test_linear_interpolation_rounded(self, score, expected):
        assert comment_payout(10, 50, score) == expected


class TestCreateEvent:
    """이벤트 생성 검증"""

    def test_defaults(self, db, make_user):
        admin = make_user(role="admin")

        event = AdminEventService(db).create_event(admin.id, event_request(type="quiz"))

        assert event.status.value == "draft"
        assert event.points_reward == settings.DEFAULT_EVENT_POINTS
        assert event.quiz_type.value == "ox"
        assert event.difficulty.value == "normal"
        assert event.created_by == admin.id

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start_at": None},
            {"end_at": NOW - timedelta(days=1)},
            {"max_participants": 0},
            {"status": "active"},
        ],
    )
    def test_invalid_fields(self, db, make_user, overrides):
        admin = make_user(role="admin")

        with pytest.raises(ValidationError):
            AdminEventService(db).create_event(admin.id, event_request(**overrides))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"review_criteria": None},
            {"min_length": None},
            {"max_points": None},
            {"min_points": 60},
            {"min_points": -1},
        ],
    )
    def test_comment_event_requirements(self, db, make_user, overrides):
        """댓글 이벤트는 심사 기준, 최소 글자 수, 0 ≤ min ≤ max 포인트가 필요"""
        admin = make_user(role="admin")

        with pytest.raises(ValidationError):
            AdminEventService(db).create_event(admin.id, comment_request(**overrides))


class TestTransitions:
    """draft → scheduled → active → ended, 역방향 불가"""

    def test_full_lifecycle(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())

        assert service.schedule_event(event.id).status.value == "scheduled"
        assert service.activate_event(event.id).status.value == "active"
        assert service.end_event(event.id).status.value == "ended"

    def test_ended_event_cannot_be_reactivated(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())
        service.activate_event(event.id)
        service.end_event(event.id)

        with pytest.raises(InvalidStateError):
            service.activate_event(event.id)

    def test_only_active_event_can_end(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())

        with pytest.raises(InvalidStateError):
            service.end_event(event.id)

    def test_active_event_cannot_be_edited(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())
        service.activate_event(event.id)

        with pytest.raises(InvalidStateError):
            service.update_event(event.id, EventUpdateRequest(title="새 제목"))

    def test_update_validates_merged_window(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())

        with pytest.raises(ValidationError):
            service.update_event(event.id, EventUpdateRequest(end_at=NOW - timedelta(hours=1)))

        updated = service.update_event(event.id, EventUpdateRequest(max_participants=30))
        assert updated.max_participants == 30

    def test_missing_event(self, db):
        with pytest.raises(NotFoundError):
            AdminEventService(db).activate_event(404)


class TestQuestions:
    def test_ox_answer_is_normalized(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request(type="quiz"))

        saved = service.add_questions(
            event.id, [QuizQuestionCreate(question="지구는 둥글다", question_type="ox", correct_answer=" o ")]
        )

        assert saved[0].correct_answer == "O"
        assert saved[0].choices is None

    @pytest.mark.parametrize(
        "question",
        [
            QuizQuestionCreate(question="참일까?", question_type="ox", correct_answer="Y"),
            QuizQuestionCreate(question="고르시오", question_type="multiple_choice", correct_answer="A"),
            QuizQuestionCreate(
                question="고르시오",
                question_type="multiple_choice",
                correct_answer="E",
                choices={"A": "1", "B": "2"},
            ),
        ],
    )
    def test_invalid_questions(self, db, make_user, question):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request(type="quiz"))

        with pytest.raises(ValidationError):
            service.add_questions(event.id, [question])

    def test_questions_only_for_quiz_events(self, db, make_user):
        admin = make_user(role="admin")
        service = AdminEventService(db)
        event = service.create_event(admin.id, event_request())

        with pytest.raises(InvalidStateError):
            service.add_questions(
                event.id, [QuizQuestionCreate(question="참?", question_type="ox", correct_answer="O")]
            )

    def test_generate_without_api_key_returns_drafts(self, db):
        drafts = asyncio.run(
            AdminEventService(db).generate_questions(
                QuizGenerateRequest(grade="elementary_3", subject="math", count=3, type="ox")
            )
        )

        assert len(drafts) == 3
        assert all(draft.question_type.value == "ox" for draft in drafts)


class TestApproval:
    """댓글 이벤트 심사 - 1회 한정"""

    @pytest.fixture
    def pending(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        service = AdminEventService(db)
        event = service.create_event(admin.id, comment_request())
        service.activate_event(event.id)
        asyncio.run(
            EventService(db).participate_first_come(
                user.id, event.id, "이번 학기 수업에서 학생들과 분수 놀이를 했어요."
            )
        )
        participation = service.list_participations(event.id, pending_only=True)[0]
        return admin, user, participation

    def test_adjusted_score_payout(self, db, pending):
        """min=10, max=50, 조정 점수 80 → +42P 거래 1건"""
        admin, user, participation = pending

        result = AdminEventService(db).approve_participation(
            admin.id, participation.id, ApprovalRequest(approved=True, adjusted_score=80)
        )

        assert result.points_awarded == 42
        assert result.score == 80
        assert result.user_new_balance == 42
        entries = db.query(PointTransaction).filter(PointTransaction.user_id == user.id).all()
        assert [entry.amount for entry in entries] == [42]
        assert entries[0].ref_id == f"event_approval_{participation.id}"

    def test_second_decision_is_rejected(self, db, pending):
        admin, user, participation = pending
        service = AdminEventService(db)
        service.approve_participation(
            admin.id, participation.id, ApprovalRequest(approved=True, adjusted_score=80)
        )

        with pytest.raises(AlreadyDecidedError):
            service.approve_participation(
                admin.id, participation.id, ApprovalRequest(approved=True, adjusted_score=100)
            )
        assert db.query(PointTransaction).filter(PointTransaction.user_id == user.id).count() == 1

    def test_rejection_pays_nothing(self, db, pending):
        admin, user, participation = pending

        result = AdminEventService(db).approve_participation(
            admin.id, participation.id, ApprovalRequest(approved=False)
        )

        assert result.points_awarded == 0
        assert result.user_new_balance is None
        assert db.query(PointTransaction).filter(PointTransaction.user_id == user.id).count() == 0

    def test_ai_score_used_without_adjustment(self, db, pending):
        admin, _, participation = pending

        result = AdminEventService(db).approve_participation(
            admin.id, participation.id, ApprovalRequest(approved=True)
        )

        assert result.score == participation.ai_score
        assert result.points_awarded == comment_payout(10, 50, participation.ai_score)

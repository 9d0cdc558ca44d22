import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from marketapi.core.exceptions import (
    AlreadyParticipatedError,
    EventFullError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.event import EventParticipation
from marketapi.models.points import PointTransaction
from marketapi.repositories.event_repository import EventRepository
from marketapi.schemas.event import EventCreateRequest, QuizQuestionCreate, QuizSubmitRequest
from marketapi.schemas.user import InterestsRequest
from marketapi.services.admin_event_service import AdminEventService
from marketapi.services.ai_service import heuristic_score
from marketapi.services.event_service import EventService, grade_quiz, normalize_answer
from marketapi.services.user_service import UserService


def create_event(db, admin_id, activate=True, **overrides):
    now = datetime.now(timezone.utc)
    fields = {
        "type": "first_come",
        "title": "선착순 이벤트",
        "start_at": now - timedelta(hours=1),
        "end_at": now + timedelta(days=1),
        "points_reward": 100,
    }
    fields.update(overrides)
    service = AdminEventService(db)
    event = service.create_event(admin_id, EventCreateRequest(**fields))
    if activate:
        event = service.activate_event(event.id)
    return event


def create_comment_event(db, admin_id):
    return create_event(
        db,
        admin_id,
        type="comment",
        title="우리 반 자랑 댓글 이벤트",
        review_criteria="성의 있는 댓글",
        min_length=10,
        min_points=10,
        max_points=50,
    )


class TestAnswerHelpers:
    def test_normalize_answer(self):
        assert normalize_answer("  O ") == "o"
        assert normalize_answer(None) == ""

    def test_grade_quiz_counts_matches(self, db, make_user):
        admin = make_user(role="admin")
        event = create_event(db, admin.id, activate=False, type="quiz", title="OX 퀴즈")
        questions = AdminEventService(db).add_questions(
            event.id,
            [
                QuizQuestionCreate(question="1+1=2", question_type="ox", correct_answer="o"),
                QuizQuestionCreate(question="2+2=5", question_type="ox", correct_answer="X"),
            ],
        )

        assert grade_quiz(questions, {questions[0].id: "O", questions[1].id: "o"}) == 1


class TestFirstCome:
    """선착순 참여 - 정원 초과 불가"""

    def test_cap_of_one_admits_exactly_one(self, db, make_user):
        """정원 1명 이벤트에 두 명이 참여하면 한 명만 성공, 다른 한 명은 EventFull"""
        # Given
        admin = make_user(role="admin")
        first, second = make_user(), make_user()
        event = create_event(db, admin.id, max_participants=1)
        service = EventService(db)

        # When
        result = asyncio.run(service.participate_first_come(first.id, event.id))
        with pytest.raises(EventFullError):
            asyncio.run(service.participate_first_come(second.id, event.id))

        # Then
        assert result.position == 1
        assert result.points_earned == 100
        assert result.new_balance == 100
        saved = EventRepository(db).get_by_id(event.id)
        assert saved.current_participants == 1
        assert db.query(EventParticipation).count() == 1

    def test_concurrent_entries_both_past_precheck(self, db, make_user):
        """두 참여가 모두 정원 사전 검사를 통과한 뒤 경쟁 - 조건부 UPDATE가 한 명만 허용"""
        # Given
        admin = make_user(role="admin")
        first, second = make_user(), make_user()
        event = create_event(
            db,
            admin.id,
            type="comment",
            title="선착순 댓글 이벤트",
            review_criteria="성의 있는 댓글",
            min_length=10,
            min_points=10,
            max_points=50,
            max_participants=1,
        )
        comment = "학생들과 함께 잘 활용하고 있습니다"

        class GatedScorer:
            """두 참여자가 모두 채점 단계에 도착한 뒤에 점수를 돌려줌"""

            def __init__(self):
                self.arrived = 0
                self.both_arrived = asyncio.Event()

            async def score_comment(self, title, description, text):
                self.arrived += 1
                if self.arrived == 2:
                    self.both_arrived.set()
                await self.both_arrived.wait()
                return heuristic_score(text)

        async def race():
            service = EventService(db, ai_service=GatedScorer())
            return await asyncio.gather(
                service.participate_first_come(first.id, event.id, comment),
                service.participate_first_come(second.id, event.id, comment),
                return_exceptions=True,
            )

        # When
        results = asyncio.run(race())

        # Then
        assert sorted(type(result).__name__ for result in results) == [
            "EventFullError",
            "ParticipationResponse",
        ]
        assert EventRepository(db).get_by_id(event.id).current_participants == 1
        assert db.query(EventParticipation).count() == 1

    def test_slot_claim_refuses_when_full(self, db, make_user):
        """정원 검사와 증가가 한 번의 UPDATE - 가득 찬 뒤에는 None"""
        admin = make_user(role="admin")
        event = create_event(db, admin.id, max_participants=2)
        repo = EventRepository(db)

        positions = [repo.try_claim_slot(event.id) for _ in range(3)]
        db.commit()

        assert positions == [1, 2, None]
        assert repo.get_by_id(event.id).current_participants == 2

    def test_second_participation_by_same_user(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_event(db, admin.id)
        service = EventService(db)
        asyncio.run(service.participate_first_come(user.id, event.id))

        with pytest.raises(AlreadyParticipatedError):
            asyncio.run(service.participate_first_come(user.id, event.id))

    def test_inactive_event(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_event(db, admin.id, activate=False, status="scheduled")

        with pytest.raises(InvalidStateError):
            asyncio.run(EventService(db).participate_first_come(user.id, event.id))

    def test_draft_event_is_hidden(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_event(db, admin.id, activate=False)

        with pytest.raises(NotFoundError):
            EventService(db).get_event(event.id, user.id)

    def test_comment_required_mission(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_event(db, admin.id, mission_type="comment_required")

        with pytest.raises(ValidationError):
            asyncio.run(EventService(db).participate_first_come(user.id, event.id, "   "))


class TestCommentParticipation:
    def test_comment_is_scored_and_awaits_approval(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_comment_event(db, admin.id)

        result = asyncio.run(
            EventService(db).participate_first_come(
                user.id, event.id, "우리 반 아이들이 이번 학기에 정말 열심히 했어요."
            )
        )

        assert result.awaiting_approval is True
        assert result.points_earned == 0
        assert result.new_balance == 0
        participation = EventService(db).my_participations(user.id)[0]
        assert participation.ai_score is not None
        assert participation.admin_approved is None

    def test_short_comment_is_rejected(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        event = create_comment_event(db, admin.id)

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(EventService(db).participate_first_come(user.id, event.id, "짧아요"))

        assert exc_info.value.message == "최소 10자 이상 작성해주세요."


class TestQuiz:
    """퀴즈 - 전부 맞혀야 보상, 이벤트당 1회"""

    @pytest.fixture
    def quiz(self, db, make_user):
        admin = make_user(role="admin")
        event = create_event(db, admin.id, activate=False, type="quiz", title="분수 퀴즈")
        questions = AdminEventService(db).add_questions(
            event.id,
            [
                QuizQuestionCreate(question="1/2 = 2/4", question_type="ox", correct_answer="O"),
                QuizQuestionCreate(
                    question="1/2 + 1/4 = ?",
                    question_type="multiple_choice",
                    correct_answer="B",
                    choices={"A": "2/6", "B": "3/4", "C": "1/8", "D": "2/4"},
                ),
            ],
        )
        AdminEventService(db).activate_event(event.id)
        return event, questions

    def test_all_correct_pays_reward(self, db, make_user, quiz):
        event, questions = quiz
        user = make_user()

        result = EventService(db).submit_quiz(
            user.id,
            event.id,
            QuizSubmitRequest(answers={questions[0].id: "o", questions[1].id: " B "}),
        )

        assert result.correct_count == 2
        assert result.points_earned == 100
        assert result.new_balance == 100
        entry = db.query(PointTransaction).filter(PointTransaction.user_id == user.id).one()
        assert entry.ref_id == f"event_{event.id}_{user.id}"

    def test_partial_answers_pay_nothing(self, db, make_user, quiz):
        event, questions = quiz
        user = make_user()

        result = EventService(db).submit_quiz(
            user.id,
            event.id,
            QuizSubmitRequest(answers={questions[0].id: "O", questions[1].id: "A"}),
        )

        assert result.correct_count == 1
        assert result.points_earned == 0
        assert result.new_balance == 0
        assert EventService(db).get_event(event.id, user.id).participated is True

    def test_resubmission_is_rejected(self, db, make_user, quiz):
        event, questions = quiz
        user = make_user()
        request = QuizSubmitRequest(answers={questions[0].id: "O", questions[1].id: "B"})
        EventService(db).submit_quiz(user.id, event.id, request)

        with pytest.raises(AlreadyParticipatedError):
            EventService(db).submit_quiz(user.id, event.id, request)

    def test_public_questions_hide_answers(self, db, make_user, quiz):
        event, _ = quiz
        user = make_user()

        detail = EventService(db).get_event(event.id, user.id)

        assert len(detail.questions) == 2
        assert "correct_answer" not in detail.questions[0].model_dump()


class TestListAvailable:
    def test_target_grades_filter(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        everyone = create_event(db, admin.id, title="전체 이벤트")
        middle = create_event(db, admin.id, title="중학생 이벤트", target_grades=["middle_1"])
        UserService(db).update_interests(user.id, InterestsRequest(grades=["elementary_3"]))

        available = EventService(db).list_available(user.id)

        assert [item.event.id for item in available] == [everyone.id]
        assert middle.id not in [item.event.id for item in available]

    def test_no_interests_sees_everything(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user()
        create_event(db, admin.id, title="전체 이벤트")
        create_event(db, admin.id, title="중학생 이벤트", target_grades=["middle_1"])

        assert len(EventService(db).list_available(user.id)) == 2

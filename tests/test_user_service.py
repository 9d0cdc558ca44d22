import pytest

from marketapi.core.exceptions import ConflictError, NotFoundError
from marketapi.schemas.user import InterestsRequest
from marketapi.services.user_service import UserService


class TestUserService:
    def test_summary_for_new_seller(self, db, make_user, make_worksheet):
        """마이페이지 요약 - 등록 자료 수와 잔액"""
        seller = make_user(points=150)
        make_worksheet(seller.id)
        make_worksheet(seller.id, price=200)

        summary = UserService(db).get_summary(seller.id)

        assert summary.points == 150
        assert summary.worksheet_count == 2
        assert summary.purchase_count == 0
        assert summary.total_earnings == 0

    def test_nickname_taken(self, db, make_user):
        first = make_user()
        second = make_user()

        with pytest.raises(ConflictError):
            UserService(db).update_nickname(second.id, first.nickname)

    def test_nickname_update(self, db, make_user):
        user = make_user()

        updated = UserService(db).update_nickname(user.id, "분수왕")

        assert updated.nickname == "분수왕"

    def test_interests_upsert(self, db, make_user):
        user = make_user()
        service = UserService(db)

        service.update_interests(user.id, InterestsRequest(grades=["elementary_3"], subjects=["math"]))
        result = service.update_interests(user.id, InterestsRequest(grades=["middle_1"]))

        assert result.grades == ["middle_1"]
        assert service.get_interests(user.id).subjects == []

    def test_missing_profile(self, db):
        with pytest.raises(NotFoundError):
            UserService(db).get_profile(404)

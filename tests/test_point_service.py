import pytest

from marketapi.core.exceptions import InsufficientBalanceError, NotFoundError
from marketapi.models.points import PointTransactionType
from marketapi.schemas.points import AdminChargeRequest
from marketapi.services.point_service import PointService


class TestPointApply:
    """원장 기록 + 잔액 변경"""

    def test_credit_and_debit_update_balance_and_ledger(self, db, make_user):
        """지급/차감이 원장과 잔액에 동시에 반영된다"""
        # Given
        user = make_user(points=100)
        service = PointService(db)

        # When
        service.apply(user.id, 50, PointTransactionType.EVENT, "이벤트 보상")
        entry = service.apply(user.id, -120, PointTransactionType.PURCHASE, "워크시트 구매")
        db.commit()

        # Then
        assert entry.balance_after == 30
        assert service.get_user_balance(user.id).balance == 30
        assert service.verify_user_integrity(user.id).status == "OK"

    def test_debit_below_zero_is_rejected(self, db, make_user):
        """잔액보다 큰 차감은 InsufficientBalanceError, 원장에 기록되지 않는다"""
        user = make_user(points=100)
        service = PointService(db)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            service.apply(user.id, -150, PointTransactionType.PURCHASE, "워크시트 구매")
        db.rollback()

        assert exc_info.value.details == {"balance": 100, "required": 150}
        ledger = service.get_user_ledger(user.id)
        assert ledger.balance == 100
        assert ledger.total_count == 1

    def test_same_ref_id_is_recorded_once(self, db, make_user):
        """같은 ref_id로 두 번 호출해도 한 번만 지급"""
        user = make_user()
        service = PointService(db)

        first = service.apply(
            user.id, 30, PointTransactionType.FEEDBACK_REFUND, "후기 작성 보상", ref_id="feedback_refund_1"
        )
        second = service.apply(
            user.id, 30, PointTransactionType.FEEDBACK_REFUND, "후기 작성 보상", ref_id="feedback_refund_1"
        )
        db.commit()

        assert first.id == second.id
        assert service.get_user_balance(user.id).balance == 30

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            PointService(db).apply(999, 10, PointTransactionType.EVENT, "이벤트 보상")


class TestAdminCharge:
    def test_admin_charge_records_reason(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user(points=10)

        entry = PointService(db).admin_charge(
            admin.id, AdminChargeRequest(user_id=user.id, amount=-10, reason="오지급 회수")
        )

        assert entry.balance_after == 0
        assert entry.description == "관리자 조정: 오지급 회수"
        assert entry.related_id == admin.id

    def test_admin_charge_cannot_go_negative(self, db, make_user):
        admin = make_user(role="admin")
        user = make_user(points=10)

        with pytest.raises(InsufficientBalanceError):
            PointService(db).admin_charge(
                admin.id, AdminChargeRequest(user_id=user.id, amount=-11, reason="회수")
            )
        assert PointService(db).get_user_balance(user.id).balance == 10


class TestIntegrity:
    def test_global_integrity_ok(self, db, make_user):
        make_user(points=100)
        make_user(points=0)

        result = PointService(db).verify_global_integrity()

        assert result.status == "OK"
        assert result.user_count == 2
        assert result.stored_balance == 100

    def test_detects_balance_written_outside_ledger(self, db, make_user):
        """원장 없이 잔액만 바뀐 사용자를 찾아낸다"""
        from marketapi.models.user import User

        user = make_user(points=100)
        db.query(User).filter(User.id == user.id).update({"points": 500})
        db.commit()

        result = PointService(db).verify_global_integrity()

        assert result.status == "MISMATCH"
        assert result.mismatched_user_ids == [user.id]

import pytest
from pydantic import ValidationError as PydanticValidationError

from marketapi.core.exceptions import (
    AlreadyOwnedError,
    AlreadyReviewedError,
    InsufficientBalanceError,
    NotFoundError,
    SelfPurchaseError,
    ValidationError,
)
from marketapi.models.worksheet import Purchase
from marketapi.models.points import PointTransaction
from marketapi.repositories.cart_repository import CartRepository
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.schemas.purchase import FeedbackCreateRequest
from marketapi.services.point_service import PointService
from marketapi.services.purchase_service import PurchaseService


def fill_cart(db, user_id, worksheets):
    cart_repo = CartRepository(db)
    for worksheet in worksheets:
        cart_repo.add_line(user_id, worksheet.id)


class TestCheckout:
    """장바구니 결제 - 전부 성공 또는 전부 실패"""

    def test_checkout_succeeds_and_clears_cart(self, db, make_user, make_worksheet):
        """잔액 300, 장바구니 [100, 150] → 새 잔액 50, 구매 기록 2건"""
        # Given
        seller = make_user()
        buyer = make_user(points=300)
        first = make_worksheet(seller.id, price=100)
        second = make_worksheet(seller.id, price=150)
        fill_cart(db, buyer.id, [first, second])

        # When
        result = PurchaseService(db).checkout(buyer.id)

        # Then
        assert result.total_spent == 250
        assert result.new_balance == 50
        assert {item.worksheet_id for item in result.purchases} == {first.id, second.id}
        assert CartRepository(db).list_for_user(buyer.id) == []
        assert db.query(Purchase).filter(Purchase.buyer_id == buyer.id).count() == 2

    def test_buyer_is_debited_once_and_seller_credited_per_line(
        self, db, make_user, make_worksheet
    ):
        seller = make_user()
        buyer = make_user(points=300)
        fill_cart(db, buyer.id, [make_worksheet(seller.id, 100), make_worksheet(seller.id, 150)])

        PurchaseService(db).checkout(buyer.id)

        buyer_debits = (
            db.query(PointTransaction)
            .filter(PointTransaction.user_id == buyer.id, PointTransaction.type == "purchase")
            .all()
        )
        assert [entry.amount for entry in buyer_debits] == [-250]
        assert PointService(db).get_user_balance(seller.id).balance == 250
        assert PointService(db).verify_global_integrity().status == "OK"

    def test_insufficient_balance_leaves_everything_untouched(
        self, db, make_user, make_worksheet
    ):
        """잔액 100, 장바구니 [100, 150] → InsufficientBalance, 잔액/장바구니 그대로"""
        seller = make_user()
        buyer = make_user(points=100)
        fill_cart(db, buyer.id, [make_worksheet(seller.id, 100), make_worksheet(seller.id, 150)])

        with pytest.raises(InsufficientBalanceError):
            PurchaseService(db).checkout(buyer.id)

        assert PointService(db).get_user_balance(buyer.id).balance == 100
        assert len(CartRepository(db).list_for_user(buyer.id)) == 2
        assert db.query(Purchase).count() == 0
        assert PointService(db).get_user_balance(seller.id).balance == 0

    def test_one_owned_line_rejects_whole_checkout(self, db, make_user, make_worksheet):
        """이미 구매한 자료가 하나라도 있으면 구매 기록/거래 모두 생성되지 않음"""
        seller = make_user()
        buyer = make_user(points=500)
        owned = make_worksheet(seller.id, 100)
        fresh = make_worksheet(seller.id, 200)
        PurchaseRepository(db).create_purchase(buyer.id, owned.id, 100, commit=True)
        fill_cart(db, buyer.id, [fresh, owned])
        transactions_before = db.query(PointTransaction).count()

        with pytest.raises(AlreadyOwnedError) as exc_info:
            PurchaseService(db).checkout(buyer.id)

        assert exc_info.value.details == {"worksheet_id": owned.id}
        assert db.query(Purchase).count() == 1
        assert db.query(PointTransaction).count() == transactions_before
        assert len(CartRepository(db).list_for_user(buyer.id)) == 2

    def test_self_authored_line_is_rejected(self, db, make_user, make_worksheet):
        seller = make_user(points=500)
        fill_cart(db, seller.id, [make_worksheet(seller.id, 100)])

        with pytest.raises(SelfPurchaseError):
            PurchaseService(db).checkout(seller.id)

    def test_missing_worksheet_line_is_rejected(self, db, make_user):
        buyer = make_user(points=500)
        CartRepository(db).add_line(buyer.id, 12345)

        with pytest.raises(NotFoundError):
            PurchaseService(db).checkout(buyer.id)

    def test_empty_cart(self, db, make_user):
        buyer = make_user(points=500)

        with pytest.raises(ValidationError):
            PurchaseService(db).checkout(buyer.id)


class TestFeedback:
    """후기 작성 보상 - 구매 1건당 1회"""

    @pytest.fixture
    def purchase(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user(points=100)
        worksheet = make_worksheet(seller.id, 100)
        fill_cart(db, buyer.id, [worksheet])
        result = PurchaseService(db).checkout(buyer.id)
        return buyer, result.purchases[0]

    def test_feedback_refunds_once(self, db, purchase):
        """두 번째 후기는 AlreadyReviewed, +30 거래는 정확히 1건"""
        buyer, item = purchase
        service = PurchaseService(db)
        request = FeedbackCreateRequest(
            purchase_id=item.purchase_id, rating=5, comment="아이들이 좋아했어요"
        )

        # When
        result = service.submit_feedback(buyer.id, request)
        with pytest.raises(AlreadyReviewedError):
            service.submit_feedback(buyer.id, request)

        # Then
        assert result.points_refunded == 30
        assert result.new_balance == 30
        refunds = (
            db.query(PointTransaction)
            .filter(PointTransaction.type == "feedback_refund")
            .all()
        )
        assert len(refunds) == 1
        assert refunds[0].ref_id == f"feedback_refund_{item.purchase_id}"

    def test_feedback_updates_rating(self, db, purchase):
        buyer, item = purchase

        PurchaseService(db).submit_feedback(
            buyer.id,
            FeedbackCreateRequest(purchase_id=item.purchase_id, rating=4, comment="유용한 자료입니다"),
        )

        feedbacks = PurchaseService(db).list_feedbacks(item.worksheet_id)
        assert [feedback.rating for feedback in feedbacks] == [4]
        assert feedbacks[0].buyer_nickname == buyer.nickname

    def test_feedback_on_someone_elses_purchase(self, db, purchase, make_user):
        _, item = purchase
        stranger = make_user()

        with pytest.raises(NotFoundError):
            PurchaseService(db).submit_feedback(
                stranger.id,
                FeedbackCreateRequest(purchase_id=item.purchase_id, rating=5, comment="좋은 자료네요"),
            )

    @pytest.mark.parametrize(
        "rating, comment",
        [(0, "좋은 자료입니다"), (6, "좋은 자료입니다"), (5, "짧음"), (5, "가" * 1001)],
    )
    def test_feedback_bounds(self, rating, comment):
        """평점 1~5, 후기 5~1000자"""
        with pytest.raises(PydanticValidationError):
            FeedbackCreateRequest(purchase_id=1, rating=rating, comment=comment)

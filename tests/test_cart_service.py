import pytest

from marketapi.core.exceptions import (
    AlreadyOwnedError,
    DuplicateLineError,
    NotFoundError,
    SelfPurchaseError,
)
from marketapi.repositories.cart_repository import CartRepository
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.services.cart_service import CartService


class TestCartService:
    """장바구니 담기/조회/삭제"""

    def test_add_and_totals(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        first = make_worksheet(seller.id, 100)
        second = make_worksheet(seller.id, 250)
        service = CartService(db)

        service.add(buyer.id, first.id)
        cart = service.add(buyer.id, second.id)

        assert cart.total_items == 2
        assert cart.total_price == 350
        assert cart.unresolved_worksheet_ids == []

    def test_duplicate_line(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id)
        service = CartService(db)
        service.add(buyer.id, worksheet.id)

        with pytest.raises(DuplicateLineError):
            service.add(buyer.id, worksheet.id)

    def test_self_purchase(self, db, make_user, make_worksheet):
        seller = make_user()
        worksheet = make_worksheet(seller.id)

        with pytest.raises(SelfPurchaseError):
            CartService(db).add(seller.id, worksheet.id)

    def test_already_owned(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id)
        PurchaseRepository(db).create_purchase(buyer.id, worksheet.id, worksheet.price, commit=True)

        with pytest.raises(AlreadyOwnedError):
            CartService(db).add(buyer.id, worksheet.id)

    def test_unapproved_worksheet_is_not_found(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id, status="pending")

        with pytest.raises(NotFoundError):
            CartService(db).add(buyer.id, worksheet.id)

    def test_unresolved_line_is_excluded_from_total(self, db, make_user, make_worksheet):
        """자료를 찾을 수 없는 항목은 합계에서 빠지고 따로 표시된다"""
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id, 300)
        service = CartService(db)
        service.add(buyer.id, worksheet.id)
        CartRepository(db).add_line(buyer.id, 9999)

        cart = service.get_cart(buyer.id)

        assert cart.total_items == 2
        assert cart.total_price == 300
        assert cart.unresolved_worksheet_ids == [9999]
        assert [line.worksheet for line in cart.items][1] is None

    def test_remove_is_idempotent(self, db, make_user, make_worksheet):
        seller = make_user()
        buyer = make_user()
        worksheet = make_worksheet(seller.id)
        service = CartService(db)
        service.add(buyer.id, worksheet.id)

        assert service.remove(buyer.id, worksheet.id).removed is True
        assert service.remove(buyer.id, worksheet.id).removed is False
        assert service.get_cart(buyer.id).total_items == 0

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.core.exceptions import (
    AlreadyOwnedError,
    DuplicateLineError,
    NotFoundError,
    SelfPurchaseError,
)
from marketapi.models.worksheet import WorksheetStatus
from marketapi.repositories.cart_repository import CartRepository
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
from marketapi.schemas.purchase import CartLine, CartRemoveResponse, CartResponse

logger = logging.getLogger(__name__)


class CartService:
    """장바구니 서비스 - 잔액에는 영향을 주지 않음"""

    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.worksheet_repo = WorksheetRepository(db)
        self.purchase_repo = PurchaseRepository(db)

    def get_cart(self, user_id: int) -> CartResponse:
        """
        장바구니 조회

        자료를 찾을 수 없는 항목은 worksheet=None으로 남기고 합계에서 제외하며,
        unresolved_worksheet_ids로 따로 알려줍니다.
        """
        lines = self.cart_repo.list_for_user(user_id)
        worksheets = self.worksheet_repo.get_many([line.worksheet_id for line in lines])

        items = []
        unresolved = []
        total_price = 0
        for line in lines:
            worksheet = worksheets.get(line.worksheet_id)
            if worksheet is None:
                unresolved.append(line.worksheet_id)
            else:
                total_price += worksheet.price
            items.append(
                CartLine(
                    id=line.id,
                    worksheet_id=line.worksheet_id,
                    worksheet=worksheet,
                    created_at=line.created_at,
                )
            )

        return CartResponse(
            items=items,
            total_items=len(items),
            total_price=total_price,
            unresolved_worksheet_ids=unresolved,
        )

    def add(self, user_id: int, worksheet_id: int) -> CartResponse:
        worksheet = self.worksheet_repo.get_by_id(worksheet_id)
        if not worksheet or worksheet.status != WorksheetStatus.APPROVED.value:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        if worksheet.seller_id == user_id:
            raise SelfPurchaseError()
        if self.purchase_repo.find_purchase(user_id, worksheet_id):
            raise AlreadyOwnedError()
        if self.cart_repo.has_line(user_id, worksheet_id):
            raise DuplicateLineError()

        try:
            self.cart_repo.add_line(user_id, worksheet_id)
        except IntegrityError:
            raise DuplicateLineError()

        logger.info(f"User {user_id} added worksheet {worksheet_id} to cart")
        return self.get_cart(user_id)

    def remove(self, user_id: int, worksheet_id: int) -> CartRemoveResponse:
        """항목 삭제 - 없는 항목이어도 성공 (멱등)"""
        removed = self.cart_repo.remove_line(user_id, worksheet_id)
        return CartRemoveResponse(removed=removed)

    def clear(self, user_id: int) -> int:
        return self.cart_repo.clear(user_id)

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketapi.models.worksheet import CartItem as CartItemModel
from marketapi.repositories.base import BaseRepository


class CartItemRecord(BaseModel):
    id: int
    user_id: int
    worksheet_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CartRepository(BaseRepository[CartItemModel, CartItemRecord]):
    """장바구니 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(CartItemModel, CartItemRecord, db)

    def list_for_user(self, user_id: int) -> List[CartItemRecord]:
        return self.find_all(filters={"user_id": user_id}, order_by="id")

    def has_line(self, user_id: int, worksheet_id: int) -> bool:
        return self.exists({"user_id": user_id, "worksheet_id": worksheet_id})

    def add_line(self, user_id: int, worksheet_id: int) -> CartItemRecord:
        return self.create(user_id=user_id, worksheet_id=worksheet_id)

    def remove_line(self, user_id: int, worksheet_id: int) -> bool:
        """항목 삭제 - 없는 항목이면 False (오류 아님)"""
        deleted = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.user_id == user_id,
                self.model_class.worksheet_id == worksheet_id,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def clear(self, user_id: int, commit: bool = True) -> int:
        deleted = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .delete(synchronize_session=False)
        )
        if commit:
            self.db.commit()
        return deleted

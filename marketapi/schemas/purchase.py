from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from marketapi.schemas.worksheet import Worksheet
from marketapi.utils.validators import validate_feedback_comment, validate_rating


class CartLine(BaseModel):
    id: int
    worksheet_id: int
    worksheet: Optional[Worksheet] = Field(
        None, description="자료 정보 (자료를 찾을 수 없으면 null)"
    )
    created_at: Optional[datetime] = None


class CartResponse(BaseModel):
    items: List[CartLine]
    total_items: int = Field(..., description="장바구니 항목 수")
    total_price: int = Field(..., description="유효한 항목 가격 합계")
    unresolved_worksheet_ids: List[int] = Field(
        default_factory=list, description="자료를 찾을 수 없는 항목"
    )


class CartAddRequest(BaseModel):
    worksheet_id: int = Field(..., gt=0)


class CartRemoveResponse(BaseModel):
    success: bool = True
    removed: bool = Field(..., description="실제로 삭제된 항목이 있었는지 여부")


class PurchasedItem(BaseModel):
    purchase_id: int
    worksheet_id: int
    title: str
    price: int


class CheckoutResponse(BaseModel):
    success: bool = True
    total_spent: int
    new_balance: int
    purchases: List[PurchasedItem]


class Purchase(BaseModel):
    id: int
    buyer_id: int
    worksheet_id: int
    price: int
    has_feedback: bool
    created_at: Optional[datetime] = None
    worksheet: Optional[Worksheet] = None

    class Config:
        from_attributes = True


class FeedbackCreateRequest(BaseModel):
    purchase_id: int = Field(..., gt=0, description="구매 기록 ID")
    rating: int = Field(..., description="평점 (1~5 정수)")
    comment: str = Field(..., description="후기 (5~1000자)")

    @field_validator("rating", mode="before")
    @classmethod
    def check_rating(cls, v):
        return validate_rating(v)

    @field_validator("comment")
    @classmethod
    def check_comment(cls, v: str) -> str:
        return validate_feedback_comment(v)


class FeedbackResponse(BaseModel):
    success: bool = True
    feedback_id: int
    points_refunded: int
    new_balance: int


class Feedback(BaseModel):
    id: int
    purchase_id: int
    worksheet_id: int
    buyer_id: int
    buyer_nickname: Optional[str] = None
    rating: int
    comment: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

"""
워크시트(학습자료) 관련 모델

판매 자료, 수정 이력, 장바구니, 구매 기록, 후기를 정의합니다.
자료는 구매자의 재다운로드 권리를 보장하기 위해 삭제되지 않습니다.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from marketapi.models.base import BaseModel, BigIntPK


class WorksheetStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Worksheet(BaseModel):
    __tablename__ = "worksheets"
    __table_args__ = (
        CheckConstraint("price >= 100 AND price <= 500", name="ck_worksheets_price"),
        Index("idx_worksheets_seller", "seller_id"),
        Index("idx_worksheets_status", "status"),
        Index("idx_worksheets_grade", "grade"),
        Index("idx_worksheets_subject", "subject"),
        Index("idx_worksheets_category", "category"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    grade: Mapped[str] = mapped_column(String(30), nullable=False)
    subject: Mapped[str] = mapped_column(String(30), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)  # 스토리지 경로
    preview_image: Mapped[str] = mapped_column(Text, nullable=False)
    page_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(2, 1), default=0, nullable=False
    )
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=WorksheetStatus.APPROVED.value, nullable=False
    )


class WorksheetEditHistory(BaseModel):
    """자료 수정 이력 - 한번 기록되면 변경되지 않음 (알림 발송 여부 제외)"""

    __tablename__ = "worksheet_edit_history"
    __table_args__ = (Index("idx_edit_history_worksheet", "worksheet_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    worksheet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("worksheets.id"), nullable=False
    )
    editor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    changes: Mapped[str] = mapped_column(Text, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notified_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class CartItem(BaseModel):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "worksheet_id", name="uq_cart_user_worksheet"),
        Index("idx_cart_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    # 자료가 사라진 경우에도 장바구니 항목은 경고용으로 남겨둠
    worksheet_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Purchase(BaseModel):
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("buyer_id", "worksheet_id", name="uq_purchase_buyer_worksheet"),
        Index("idx_purchases_buyer", "buyer_id"),
        Index("idx_purchases_worksheet", "worksheet_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    buyer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    worksheet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("worksheets.id"), nullable=False
    )
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # 구매 당시 가격
    has_feedback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Feedback(BaseModel):
    __tablename__ = "feedbacks"
    __table_args__ = (
        UniqueConstraint("purchase_id", name="uq_feedback_purchase"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating"),
        Index("idx_feedbacks_worksheet", "worksheet_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    purchase_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchases.id"), nullable=False
    )
    worksheet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("worksheets.id"), nullable=False
    )
    buyer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

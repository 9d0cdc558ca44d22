import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketapi.models.base import BaseModel, BigIntPK


class NotificationType(str, enum.Enum):
    WORKSHEET_UPDATED = "worksheet_updated"
    EVENT = "event"
    SYSTEM = "system"


class RecipientType(str, enum.Enum):
    ALL = "all"
    GRADE_GROUP = "grade_group"
    INDIVIDUAL = "individual"


class MessageType(str, enum.Enum):
    NOTICE = "notice"
    INQUIRY = "inquiry"
    INQUIRY_REPLY = "inquiry_reply"
    SYSTEM = "system"


class Notification(BaseModel):
    __tablename__ = "notifications"
    __table_args__ = (Index("idx_notifications_user", "user_id", "is_read"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    worksheet_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    edit_history_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Message(BaseModel):
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_recipient", "recipient_id"),
        Index("idx_messages_type", "recipient_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    sender_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )
    recipient_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )  # NULL = 관리자 앞 문의 또는 단체 발송
    recipient_type: Mapped[str] = mapped_column(
        String(20), default=RecipientType.INDIVIDUAL.value, nullable=False
    )
    recipient_grades: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    message_type: Mapped[str] = mapped_column(
        String(20), default=MessageType.NOTICE.value, nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("messages.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class WorksheetInquiry(BaseModel):
    __tablename__ = "worksheet_inquiries"
    __table_args__ = (
        Index("idx_inquiries_buyer", "buyer_id"),
        Index("idx_inquiries_seller", "seller_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    worksheet_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("worksheets.id"), nullable=False
    )
    buyer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    seller_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    reply: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    replied_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class UserInterest(BaseModel):
    __tablename__ = "user_interests"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), unique=True, nullable=False
    )
    grades: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    subjects: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

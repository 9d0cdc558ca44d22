from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, desc, or_, update
from sqlalchemy.orm import Session

from marketapi.models.message import (
    Message as MessageModel,
    MessageType,
    RecipientType,
    WorksheetInquiry as InquiryModel,
)
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.message import (
    Message as MessageSchema,
    WorksheetInquiry as InquirySchema,
)


class MessageRepository(BaseRepository[MessageModel, MessageSchema]):
    """공지/문의 메시지 및 자료 문의 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(MessageModel, MessageSchema, db)

    def inbox(self, user_id: int, grades: List[str], limit: int = 50) -> List[MessageSchema]:
        """
        사용자 수신함

        - 나에게 온 개별 메시지
        - 전체 공지
        - 관심 학년이 겹치는 학년 그룹 공지 (JSON 비교는 DB마다 달라 메모리에서 필터)
        """
        self._ensure_clean_session()
        rows = (
            self.db.query(MessageModel)
            .filter(
                or_(
                    and_(
                        MessageModel.recipient_type == RecipientType.INDIVIDUAL.value,
                        MessageModel.recipient_id == user_id,
                    ),
                    MessageModel.recipient_type == RecipientType.ALL.value,
                    MessageModel.recipient_type == RecipientType.GRADE_GROUP.value,
                )
            )
            .order_by(desc(MessageModel.id))
            .all()
        )
        wanted = set(grades)
        visible = [
            row
            for row in rows
            if row.recipient_type != RecipientType.GRADE_GROUP.value
            or wanted.intersection(row.recipient_grades or [])
        ]
        return self._to_schemas(visible[:limit])

    def admin_inquiries(self) -> List[MessageSchema]:
        """관리자 앞 문의 목록"""
        return self.find_all(
            filters={"message_type": MessageType.INQUIRY.value},
            order_by="id",
            descending=True,
        )

    def mark_read(self, user_id: int, message_id: int) -> int:
        result = self.db.execute(
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .where(MessageModel.recipient_id == user_id)
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        return result.rowcount

    # 자료 문의

    def create_inquiry(
        self, worksheet_id: int, buyer_id: int, seller_id: int, content: str
    ) -> InquirySchema:
        inquiry = InquiryModel(
            worksheet_id=worksheet_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            content=content,
        )
        self.db.add(inquiry)
        try:
            self.db.flush()
            self.db.refresh(inquiry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return InquirySchema.model_validate(inquiry)

    def get_inquiry(self, inquiry_id: int) -> Optional[InquirySchema]:
        row = self.db.query(InquiryModel).filter(InquiryModel.id == inquiry_id).first()
        return InquirySchema.model_validate(row) if row else None

    def reply_inquiry(self, inquiry_id: int, reply: str) -> Optional[InquirySchema]:
        row = self.db.query(InquiryModel).filter(InquiryModel.id == inquiry_id).first()
        if row is None:
            return None
        row.reply = reply
        row.replied_at = datetime.now(timezone.utc)
        try:
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return InquirySchema.model_validate(row)

    def inquiries_by_buyer(self, buyer_id: int) -> List[InquirySchema]:
        rows = (
            self.db.query(InquiryModel)
            .filter(InquiryModel.buyer_id == buyer_id)
            .order_by(desc(InquiryModel.id))
            .all()
        )
        return [InquirySchema.model_validate(row) for row in rows]

    def inquiries_by_seller(self, seller_id: int) -> List[InquirySchema]:
        rows = (
            self.db.query(InquiryModel)
            .filter(InquiryModel.seller_id == seller_id)
            .order_by(desc(InquiryModel.id))
            .all()
        )
        return [InquirySchema.model_validate(row) for row in rows]

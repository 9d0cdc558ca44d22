import logging
from typing import List

from sqlalchemy.orm import Session

from marketapi.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from marketapi.models.message import MessageType, RecipientType
from marketapi.repositories.message_repository import MessageRepository
from marketapi.repositories.user_repository import UserRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
from marketapi.schemas.message import (
    InquiryCreateRequest,
    Message,
    MyInquiriesResponse,
    NoticeCreateRequest,
    ReadResultResponse,
    ReplyRequest,
    WorksheetInquiry,
    WorksheetInquiryCreateRequest,
)

logger = logging.getLogger(__name__)


class MessageService:
    """공지 / 관리자 문의 / 자료 문의 서비스"""

    def __init__(self, db: Session):
        self.db = db
        self.message_repo = MessageRepository(db)
        self.user_repo = UserRepository(db)
        self.worksheet_repo = WorksheetRepository(db)

    # 공지 (관리자)

    def send_notice(self, admin_id: int, request: NoticeCreateRequest) -> Message:
        if request.recipient_type == RecipientType.INDIVIDUAL and not self.user_repo.get_by_id(
            request.recipient_id
        ):
            raise NotFoundError("수신자를 찾을 수 없습니다.")

        message = self.message_repo.create(
            sender_id=admin_id,
            recipient_id=(
                request.recipient_id
                if request.recipient_type == RecipientType.INDIVIDUAL
                else None
            ),
            recipient_type=request.recipient_type.value,
            recipient_grades=(
                request.recipient_grades
                if request.recipient_type == RecipientType.GRADE_GROUP
                else None
            ),
            message_type=MessageType.NOTICE.value,
            title=request.title,
            content=request.content,
        )
        logger.info(
            f"Admin {admin_id} sent notice {message.id} ({request.recipient_type.value})"
        )
        return message

    def inbox(self, user_id: int) -> List[Message]:
        """수신함 - 개별 메시지, 전체 공지, 관심 학년 그룹 공지"""
        grades = self.user_repo.get_interests(user_id).grades
        return self.message_repo.inbox(user_id, grades)

    def mark_read(self, user_id: int, message_id: int) -> ReadResultResponse:
        return ReadResultResponse(updated=self.message_repo.mark_read(user_id, message_id))

    # 관리자 문의

    def send_inquiry(self, user_id: int, request: InquiryCreateRequest) -> Message:
        message = self.message_repo.create(
            sender_id=user_id,
            recipient_type=RecipientType.INDIVIDUAL.value,
            message_type=MessageType.INQUIRY.value,
            title=request.title,
            content=request.content,
        )
        logger.info(f"User {user_id} sent inquiry {message.id}")
        return message

    def admin_inquiries(self) -> List[Message]:
        return self.message_repo.admin_inquiries()

    def reply(self, admin_id: int, parent_id: int, request: ReplyRequest) -> Message:
        parent = self.message_repo.get_by_id(parent_id)
        if not parent or parent.message_type != MessageType.INQUIRY:
            raise NotFoundError("문의를 찾을 수 없습니다.")

        return self.message_repo.create(
            sender_id=admin_id,
            recipient_id=parent.sender_id,
            recipient_type=RecipientType.INDIVIDUAL.value,
            message_type=MessageType.INQUIRY_REPLY.value,
            parent_id=parent.id,
            title=f"Re: {parent.title}",
            content=request.content,
        )

    # 자료 문의 (구매자 → 판매자)

    def ask_seller(self, user_id: int, request: WorksheetInquiryCreateRequest) -> WorksheetInquiry:
        worksheet = self.worksheet_repo.get_by_id(request.worksheet_id)
        if not worksheet:
            raise NotFoundError("워크시트를 찾을 수 없습니다.")
        if worksheet.seller_id == user_id:
            raise ValidationError("본인의 자료에는 문의할 수 없습니다.")

        inquiry = self.message_repo.create_inquiry(
            worksheet_id=worksheet.id,
            buyer_id=user_id,
            seller_id=worksheet.seller_id,
            content=request.content.strip(),
        )
        logger.info(f"User {user_id} asked seller {worksheet.seller_id} about worksheet {worksheet.id}")
        return inquiry

    def reply_inquiry(self, user_id: int, inquiry_id: int, request: ReplyRequest) -> WorksheetInquiry:
        inquiry = self.message_repo.get_inquiry(inquiry_id)
        if not inquiry:
            raise NotFoundError("문의를 찾을 수 없습니다.")
        if inquiry.seller_id != user_id:
            raise AuthorizationError("판매자만 답변할 수 있습니다.")
        return self.message_repo.reply_inquiry(inquiry_id, request.content.strip())

    def my_inquiries(self, user_id: int) -> MyInquiriesResponse:
        return MyInquiriesResponse(
            asked=self.message_repo.inquiries_by_buyer(user_id),
            received=self.message_repo.inquiries_by_seller(user_id),
        )

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from marketapi.models.message import MessageType, NotificationType, RecipientType


class Notification(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    worksheet_id: Optional[int] = None
    edit_history_id: Optional[int] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    count: int


class ReadResultResponse(BaseModel):
    success: bool = True
    updated: int = 0


class Message(BaseModel):
    id: int
    sender_id: Optional[int] = None
    recipient_id: Optional[int] = None
    recipient_type: RecipientType
    recipient_grades: Optional[List[str]] = None
    message_type: MessageType
    parent_id: Optional[int] = None
    title: str
    content: str
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NoticeCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    recipient_type: RecipientType = RecipientType.ALL
    recipient_grades: Optional[List[str]] = None
    recipient_id: Optional[int] = None

    @model_validator(mode="after")
    def check_recipient(self):
        if self.recipient_type == RecipientType.INDIVIDUAL and not self.recipient_id:
            raise ValueError("개별 발송에는 recipient_id가 필요합니다.")
        if self.recipient_type == RecipientType.GRADE_GROUP and not self.recipient_grades:
            raise ValueError("학년 그룹 발송에는 recipient_grades가 필요합니다.")
        return self


class InquiryCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=2000)


class ReplyRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class WorksheetInquiry(BaseModel):
    id: int
    worksheet_id: int
    buyer_id: int
    seller_id: int
    content: str
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorksheetInquiryCreateRequest(BaseModel):
    worksheet_id: int = Field(..., gt=0)
    content: str = Field(..., min_length=1, max_length=2000)


class MyInquiriesResponse(BaseModel):
    asked: List[WorksheetInquiry] = Field(default_factory=list, description="내가 남긴 문의")
    received: List[WorksheetInquiry] = Field(
        default_factory=list, description="내 자료에 달린 문의"
    )

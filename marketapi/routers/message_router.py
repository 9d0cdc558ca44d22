from typing import List

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, status

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_message_service
from marketapi.schemas.message import (
    InquiryCreateRequest,
    Message,
    MyInquiriesResponse,
    ReadResultResponse,
    ReplyRequest,
    WorksheetInquiry,
    WorksheetInquiryCreateRequest,
)
from marketapi.schemas.user import User as UserSchema
from marketapi.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=List[Message])
@inject
def inbox(
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> List[Message]:
    """수신함 - 개별 메시지, 전체 공지, 관심 학년 공지"""
    return message_service.inbox(current_user.id)


@router.post("/{message_id}/read", response_model=ReadResultResponse)
@inject
def mark_read(
    message_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> ReadResultResponse:
    return message_service.mark_read(current_user.id, message_id)


@router.post("/inquiries", response_model=Message, status_code=status.HTTP_201_CREATED)
@inject
def send_inquiry(
    request: InquiryCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> Message:
    """관리자에게 문의"""
    return message_service.send_inquiry(current_user.id, request)


@router.post(
    "/worksheet-inquiries",
    response_model=WorksheetInquiry,
    status_code=status.HTTP_201_CREATED,
)
@inject
def ask_seller(
    request: WorksheetInquiryCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> WorksheetInquiry:
    return message_service.ask_seller(current_user.id, request)


@router.post("/worksheet-inquiries/{inquiry_id}/reply", response_model=WorksheetInquiry)
@inject
def reply_to_inquiry(
    inquiry_id: int,
    request: ReplyRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> WorksheetInquiry:
    return message_service.reply_inquiry(current_user.id, inquiry_id, request)


@router.get("/worksheet-inquiries/mine", response_model=MyInquiriesResponse)
@inject
def my_inquiries(
    current_user: UserSchema = Depends(get_current_active_user),
    message_service: MessageService = Depends(get_message_service),
) -> MyInquiriesResponse:
    return message_service.my_inquiries(current_user.id)

"""
구매/후기 API 라우터

- POST /purchases/checkout: 장바구니 전체 구매 (전부 성공 또는 전부 실패)
- GET  /purchases: 내 구매 목록
- POST /feedbacks: 후기 작성 + 보상 (구매 1건당 1회)
- GET  /feedbacks/mine: 내가 쓴 후기
- GET  /feedbacks/worksheet/{worksheet_id}: 자료 후기 목록
"""

import logging
from typing import List

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_purchase_service
from marketapi.schemas.purchase import (
    CheckoutResponse,
    Feedback,
    FeedbackCreateRequest,
    FeedbackResponse,
    Purchase,
)
from marketapi.schemas.user import User as UserSchema
from marketapi.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["purchases"])


@router.post("/purchases/checkout", response_model=CheckoutResponse)
@inject
def checkout(
    current_user: UserSchema = Depends(get_current_active_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
) -> CheckoutResponse:
    """
    장바구니 결제

    HTTP Status:
        200: 결제 완료 (총액, 새 잔액, 구매 목록)
        400: 포인트 부족 (BALANCE_001)
        404: 구매할 수 없는 자료 포함
        409: 본인 자료 / 이미 구매한 자료 포함
        422: 장바구니가 비어 있음
    """
    return purchase_service.checkout(current_user.id)


@router.get("/purchases", response_model=List[Purchase])
@inject
def list_purchases(
    current_user: UserSchema = Depends(get_current_active_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
) -> List[Purchase]:
    return purchase_service.list_purchases(current_user.id)


@router.post("/feedbacks", response_model=FeedbackResponse)
@inject
def submit_feedback(
    request: FeedbackCreateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
) -> FeedbackResponse:
    return purchase_service.submit_feedback(current_user.id, request)


@router.get("/feedbacks/mine", response_model=List[Feedback])
@inject
def my_feedbacks(
    current_user: UserSchema = Depends(get_current_active_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
) -> List[Feedback]:
    return purchase_service.my_feedbacks(current_user.id)


@router.get("/feedbacks/worksheet/{worksheet_id}", response_model=List[Feedback])
@inject
def list_feedbacks(
    worksheet_id: int,
    purchase_service: PurchaseService = Depends(get_purchase_service),
) -> List[Feedback]:
    return purchase_service.list_feedbacks(worksheet_id)

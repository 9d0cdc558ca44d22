"""
포인트 API 라우터

사용자용 엔드포인트:
- GET /points/balance: 내 포인트 잔액
- GET /points/ledger: 내 포인트 거래 내역 (최신순)
- GET /points/integrity/my: 내 포인트 정합성 검증

관리자용 엔드포인트는 admin_router에 있습니다.
"""

import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Query

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_point_service
from marketapi.schemas.points import (
    PointsBalanceResponse,
    PointsIntegrityCheckResponse,
    PointsLedgerResponse,
)
from marketapi.schemas.user import User as UserSchema
from marketapi.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/balance", response_model=PointsBalanceResponse)
@inject
def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsBalanceResponse:
    return point_service.get_user_balance(current_user.id)


@router.get("/ledger", response_model=PointsLedgerResponse)
@inject
def get_my_ledger(
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsLedgerResponse:
    """
    내 포인트 거래 내역 조회

    Query Parameters:
        limit: 한 페이지에 조회할 항목 수 (1-100, 기본: 50)
        offset: 건너뛸 항목 수 (기본: 0)
    """
    return point_service.get_user_ledger(current_user.id, limit=limit, offset=offset)


@router.get("/integrity/my", response_model=PointsIntegrityCheckResponse)
@inject
def verify_my_integrity(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    """잔액 = 거래 합계 = 마지막 balance_after 인지 검증"""
    return point_service.verify_user_integrity(current_user.id)

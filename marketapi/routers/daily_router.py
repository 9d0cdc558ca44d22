from typing import List

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Query

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_daily_reward_service
from marketapi.schemas.daily import (
    AttendanceRecord,
    AttendanceResponse,
    DailyStatusResponse,
    RouletteResponse,
)
from marketapi.schemas.user import User as UserSchema
from marketapi.services.daily_reward_service import DailyRewardService

router = APIRouter(prefix="/daily", tags=["daily"])


@router.get("/status", response_model=DailyStatusResponse)
@inject
def get_today_status(
    current_user: UserSchema = Depends(get_current_active_user),
    daily_service: DailyRewardService = Depends(get_daily_reward_service),
) -> DailyStatusResponse:
    return daily_service.get_today_status(current_user.id)


@router.post("/attendance", response_model=AttendanceResponse)
@inject
def check_attendance(
    current_user: UserSchema = Depends(get_current_active_user),
    daily_service: DailyRewardService = Depends(get_daily_reward_service),
) -> AttendanceResponse:
    """출석 체크 (KST 기준 하루 1회, 7일/30일 연속 보너스)"""
    return daily_service.check_attendance(current_user.id)


@router.get("/attendance/history", response_model=List[AttendanceRecord])
@inject
def get_attendance_history(
    limit: int = Query(30, ge=1, le=100),
    current_user: UserSchema = Depends(get_current_active_user),
    daily_service: DailyRewardService = Depends(get_daily_reward_service),
) -> List[AttendanceRecord]:
    return daily_service.get_attendance_history(current_user.id, limit)


@router.post("/roulette", response_model=RouletteResponse)
@inject
def spin_roulette(
    current_user: UserSchema = Depends(get_current_active_user),
    daily_service: DailyRewardService = Depends(get_daily_reward_service),
) -> RouletteResponse:
    """룰렛 (하루 1회) - 당첨 금액은 서버에서 확정"""
    return daily_service.spin_roulette(current_user.id)

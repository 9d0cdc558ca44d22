from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class AttendanceResponse(BaseModel):
    """출석 체크 결과"""

    success: bool = True
    streak: int = Field(..., description="연속 출석 일수")
    base_points: int = Field(..., description="기본 포인트")
    bonus_points: int = Field(..., description="연속 출석 보너스")
    total_points: int = Field(..., description="지급 포인트 합계")
    new_balance: int = Field(..., description="지급 후 잔액")


class RouletteResponse(BaseModel):
    """룰렛 결과 - 당첨 금액은 응답 전에 서버에서 확정됨"""

    success: bool = True
    points_won: int = Field(..., description="당첨 포인트")
    prize_index: int = Field(..., description="prizes 내 당첨 위치 (애니메이션용)")
    prizes: List[int] = Field(..., description="룰렛 칸 구성")
    new_balance: int = Field(..., description="지급 후 잔액")


class AttendanceRecord(BaseModel):
    check_date: date
    streak: int
    base_points: int
    bonus_points: int
    total_points: int

    class Config:
        from_attributes = True


class DailyStatusResponse(BaseModel):
    today: date
    attended_today: bool
    current_streak: int
    spun_today: bool
    today_prize: Optional[int] = None

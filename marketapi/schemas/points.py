from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime


class PointsBalanceResponse(BaseModel):
    """포인트 잔액 응답"""

    balance: int = Field(..., description="현재 포인트 잔액")

    class Config:
        from_attributes = True


class PointTransactionEntry(BaseModel):
    """포인트 원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    user_id: int = Field(..., description="사용자 ID")
    type: str = Field(..., description="거래 유형")
    amount: int = Field(..., description="포인트 변화량")
    balance_after: int = Field(..., description="거래 후 잔액")
    description: str = Field(..., description="거래 설명")
    related_id: Optional[int] = Field(None, description="관련 엔티티 ID")
    ref_id: Optional[str] = Field(None, description="참조 ID")
    created_at: Optional[datetime] = Field(None, description="생성 시간")

    class Config:
        from_attributes = True


class PointsLedgerResponse(BaseModel):
    """포인트 원장 조회 응답"""

    balance: int = Field(..., description="현재 잔액")
    entries: List[PointTransactionEntry] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class AdminChargeRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: int = Field(..., gt=0, description="사용자 ID")
    amount: int = Field(..., description="조정할 포인트 (양수: 추가, 음수: 차감)")
    reason: str = Field(..., min_length=1, max_length=255, description="조정 사유")

    @field_validator("amount")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("조정 포인트는 0일 수 없습니다.")
        return v


class PointsIntegrityCheckResponse(BaseModel):
    """포인트 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    user_id: Optional[int] = Field(None, description="검증 대상 사용자 ID")
    stored_balance: Optional[int] = Field(None, description="users.points 값")
    calculated_balance: Optional[int] = Field(None, description="거래 합계")
    recorded_balance: Optional[int] = Field(None, description="마지막 balance_after")
    entry_count: Optional[int] = Field(None, description="거래 건수")
    user_count: Optional[int] = Field(None, description="검증한 사용자 수")
    mismatched_user_ids: List[int] = Field(
        default_factory=list, description="불일치 사용자 목록"
    )
    verified_at: datetime = Field(..., description="검증 시각")

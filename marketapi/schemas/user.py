from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from marketapi.models.user import UserRole
from marketapi.utils.validators import validate_nickname


class User(BaseModel):
    id: int
    email: EmailStr
    nickname: str
    role: UserRole = UserRole.TEACHER
    points: int = 0
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    is_active: bool = True

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)


class UserProfile(BaseModel):
    """공개 프로필"""

    id: int
    nickname: str
    role: UserRole
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class NicknameUpdateRequest(BaseModel):
    nickname: str = Field(..., description="새 닉네임 (2~20자)")

    @field_validator("nickname")
    @classmethod
    def check_nickname(cls, v: str) -> str:
        return validate_nickname(v)


class MySummaryResponse(BaseModel):
    """마이페이지 요약"""

    points: int = Field(..., description="현재 포인트")
    purchase_count: int = Field(..., description="구매한 자료 수")
    worksheet_count: int = Field(..., description="등록한 자료 수")
    total_sales: int = Field(..., description="총 판매 수")
    total_earnings: int = Field(..., description="총 판매 수익 (포인트)")


class InterestsRequest(BaseModel):
    grades: list[str] = Field(default_factory=list, description="관심 학년")
    subjects: list[str] = Field(default_factory=list, description="관심 과목")


class InterestsResponse(BaseModel):
    grades: list[str] = Field(default_factory=list)
    subjects: list[str] = Field(default_factory=list)

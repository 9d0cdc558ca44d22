from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from marketapi.schemas.user import User
from marketapi.utils.validators import validate_nickname


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    nickname: str
    # 관리자 역할은 스스로 선택할 수 없음
    role: Literal["teacher", "parent"] = "teacher"

    @field_validator("nickname")
    @classmethod
    def check_nickname(cls, v: str) -> str:
        return validate_nickname(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenData(BaseModel):
    email: Optional[str] = None
    user_id: Optional[int] = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class LogoutResponse(BaseModel):
    success: bool = True

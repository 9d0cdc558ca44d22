from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.core.exceptions import AuthenticationError, AuthorizationError
from marketapi.database.session import get_db
from marketapi.models.user import UserRole
from marketapi.schemas.user import User as UserSchema
from marketapi.services.auth_service import AuthService

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[UserSchema]:
    """선택적 사용자 인증 - 토큰이 없거나 유효하지 않아도 None 반환"""
    if not credentials:
        return None

    auth_service = AuthService(db, settings=settings)
    try:
        return auth_service.get_current_user(credentials.credentials)
    except AuthenticationError:
        return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UserSchema:
    """필수 사용자 인증 - 유효한 토큰이 필요함"""
    if not credentials:
        raise AuthenticationError("로그인이 필요합니다.")

    auth_service = AuthService(db, settings=settings)
    return auth_service.get_current_user(credentials.credentials)


def get_current_active_user(
    current_user: UserSchema = Depends(get_current_user),
) -> UserSchema:
    """활성 사용자만 허용"""
    if not current_user.is_active:
        raise AuthenticationError("비활성화된 계정입니다.")
    return current_user


def require_admin(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserSchema:
    """관리자 권한 - 계정의 role 속성으로만 판단"""
    if not UserRole.has_permission(current_user.role, UserRole.ADMIN):
        raise AuthorizationError("관리자 권한이 필요합니다.")
    return current_user

import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, status

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_auth_service
from marketapi.schemas.auth import AuthResponse, LoginRequest, LogoutResponse, SignupRequest
from marketapi.schemas.user import User as UserSchema
from marketapi.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@inject
def signup(
    request: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    이메일 회원가입 - 가입 보너스 포인트가 같은 트랜잭션에서 지급됩니다.

    HTTP Status:
        201: 가입 성공 (토큰 + 계정)
        409: 이메일/닉네임 중복
        422: 입력값 검증 실패
    """
    return auth_service.signup(request)


@router.post("/login", response_model=AuthResponse)
@inject
def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return auth_service.login(request)


@router.get("/me", response_model=UserSchema)
def me(current_user: UserSchema = Depends(get_current_active_user)) -> UserSchema:
    return current_user


@router.post("/logout", response_model=LogoutResponse)
def logout(current_user: UserSchema = Depends(get_current_active_user)) -> LogoutResponse:
    """토큰은 상태가 없으므로 서버에서는 확인 응답만 반환"""
    logger.info(f"User {current_user.id} logged out")
    return LogoutResponse()

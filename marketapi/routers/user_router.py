from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_user_service
from marketapi.schemas.user import (
    InterestsRequest,
    InterestsResponse,
    MySummaryResponse,
    NicknameUpdateRequest,
    User as UserSchema,
    UserProfile,
)
from marketapi.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/summary", response_model=MySummaryResponse)
@inject
def get_my_summary(
    current_user: UserSchema = Depends(get_current_active_user),
    user_service: UserService = Depends(get_user_service),
) -> MySummaryResponse:
    """마이페이지 요약 (포인트, 구매/등록 수, 판매 수익)"""
    return user_service.get_summary(current_user.id)


@router.patch("/me/nickname", response_model=UserSchema)
@inject
def update_my_nickname(
    request: NicknameUpdateRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    user_service: UserService = Depends(get_user_service),
) -> UserSchema:
    return user_service.update_nickname(current_user.id, request.nickname)


@router.get("/me/interests", response_model=InterestsResponse)
@inject
def get_my_interests(
    current_user: UserSchema = Depends(get_current_active_user),
    user_service: UserService = Depends(get_user_service),
) -> InterestsResponse:
    return user_service.get_interests(current_user.id)


@router.put("/me/interests", response_model=InterestsResponse)
@inject
def update_my_interests(
    request: InterestsRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    user_service: UserService = Depends(get_user_service),
) -> InterestsResponse:
    return user_service.update_interests(current_user.id, request)


@router.get("/{user_id}/profile", response_model=UserProfile)
@inject
def get_profile(
    user_id: int,
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    return user_service.get_profile(user_id)

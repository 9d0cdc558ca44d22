from typing import List

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Query

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_notification_service
from marketapi.schemas.message import Notification, ReadResultResponse, UnreadCountResponse
from marketapi.schemas.user import User as UserSchema
from marketapi.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[Notification])
@inject
def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    current_user: UserSchema = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service),
) -> List[Notification]:
    return notification_service.list(current_user.id, limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
@inject
def unread_count(
    current_user: UserSchema = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    return notification_service.unread_count(current_user.id)


@router.post("/read-all", response_model=ReadResultResponse)
@inject
def mark_all_read(
    current_user: UserSchema = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReadResultResponse:
    return notification_service.mark_all_read(current_user.id)


@router.post("/{notification_id}/read", response_model=ReadResultResponse)
@inject
def mark_read(
    notification_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReadResultResponse:
    return notification_service.mark_read(current_user.id, notification_id)


@router.delete("/{notification_id}", response_model=ReadResultResponse)
@inject
def delete_notification(
    notification_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReadResultResponse:
    return notification_service.delete(current_user.id, notification_id)

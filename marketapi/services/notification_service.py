import logging
from typing import List

from sqlalchemy.orm import Session

from marketapi.core.exceptions import NotFoundError
from marketapi.repositories.notification_repository import NotificationRepository
from marketapi.schemas.message import Notification, ReadResultResponse, UnreadCountResponse

logger = logging.getLogger(__name__)


class NotificationService:
    """사용자 알림 서비스 - 본인 알림만 조회/변경 가능"""

    def __init__(self, db: Session):
        self.db = db
        self.notification_repo = NotificationRepository(db)

    def list(self, user_id: int, limit: int = 50) -> List[Notification]:
        return self.notification_repo.list_for_user(user_id, max(1, min(limit, 100)))

    def unread_count(self, user_id: int) -> UnreadCountResponse:
        return UnreadCountResponse(count=self.notification_repo.unread_count(user_id))

    def mark_read(self, user_id: int, notification_id: int) -> ReadResultResponse:
        updated = self.notification_repo.mark_read(user_id, notification_id)
        if not updated:
            raise NotFoundError("알림을 찾을 수 없습니다.")
        return ReadResultResponse(updated=updated)

    def mark_all_read(self, user_id: int) -> ReadResultResponse:
        updated = self.notification_repo.mark_all_read(user_id)
        logger.info(f"User {user_id} marked {updated} notifications as read")
        return ReadResultResponse(updated=updated)

    def delete(self, user_id: int, notification_id: int) -> ReadResultResponse:
        deleted = self.notification_repo.delete_for_user(user_id, notification_id)
        if not deleted:
            raise NotFoundError("알림을 찾을 수 없습니다.")
        return ReadResultResponse(updated=deleted)

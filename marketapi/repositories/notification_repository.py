from typing import List

from sqlalchemy import desc, update
from sqlalchemy.orm import Session

from marketapi.models.message import Notification as NotificationModel
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.message import Notification as NotificationSchema


class NotificationRepository(BaseRepository[NotificationModel, NotificationSchema]):
    """사용자 알림 리포지토리 - 모든 조회/변경은 user_id로 범위가 제한됨"""

    def __init__(self, db: Session):
        super().__init__(NotificationModel, NotificationSchema, db)

    def bulk_create(self, notifications: List[dict]) -> int:
        """알림 일괄 생성 (커밋하지 않음)"""
        self.db.add_all([NotificationModel(**data) for data in notifications])
        self.db.flush()
        return len(notifications)

    def list_for_user(self, user_id: int, limit: int = 50) -> List[NotificationSchema]:
        self._ensure_clean_session()
        rows = (
            self.db.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .order_by(desc(NotificationModel.id))
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows)

    def unread_count(self, user_id: int) -> int:
        return self.count({"user_id": user_id, "is_read": False})

    def mark_read(self, user_id: int, notification_id: int) -> int:
        result = self.db.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .where(NotificationModel.user_id == user_id)
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        return result.rowcount

    def mark_all_read(self, user_id: int) -> int:
        result = self.db.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        return result.rowcount

    def delete_for_user(self, user_id: int, notification_id: int) -> int:
        deleted = (
            self.db.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

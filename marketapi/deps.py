from fastapi import Depends
from sqlalchemy.orm import Session

from marketapi.config import settings
from marketapi.database.session import get_db

# Services
from marketapi.services.admin_event_service import AdminEventService
from marketapi.services.ai_service import AiService
from marketapi.services.auth_service import AuthService
from marketapi.services.cart_service import CartService
from marketapi.services.daily_reward_service import DailyRewardService
from marketapi.services.event_service import EventService
from marketapi.services.message_service import MessageService
from marketapi.services.notification_service import NotificationService
from marketapi.services.point_service import PointService
from marketapi.services.purchase_service import PurchaseService
from marketapi.services.storage_service import StorageService
from marketapi.services.user_service import UserService
from marketapi.services.worksheet_service import WorksheetService


def get_storage_service() -> StorageService:
    return StorageService(settings=settings)


def get_ai_service() -> AiService:
    return AiService(settings=settings)


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db=db, settings=settings)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db=db)


def get_point_service(db: Session = Depends(get_db)) -> PointService:
    return PointService(db=db)


def get_worksheet_service(
    db: Session = Depends(get_db),
    storage_service: StorageService = Depends(get_storage_service),
) -> WorksheetService:
    return WorksheetService(db=db, storage_service=storage_service)


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db)


def get_purchase_service(db: Session = Depends(get_db)) -> PurchaseService:
    return PurchaseService(db=db)


def get_daily_reward_service(db: Session = Depends(get_db)) -> DailyRewardService:
    return DailyRewardService(db=db, settings=settings)


def get_event_service(
    db: Session = Depends(get_db),
    ai_service: AiService = Depends(get_ai_service),
) -> EventService:
    return EventService(db=db, ai_service=ai_service)


def get_admin_event_service(
    db: Session = Depends(get_db),
    ai_service: AiService = Depends(get_ai_service),
) -> AdminEventService:
    return AdminEventService(db=db, ai_service=ai_service)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db=db)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    return MessageService(db=db)

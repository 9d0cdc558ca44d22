# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .points_repository import PointsRepository
from .worksheet_repository import WorksheetRepository
from .cart_repository import CartRepository
from .purchase_repository import PurchaseRepository
from .event_repository import EventRepository
from .daily_repository import DailyRepository
from .notification_repository import NotificationRepository
from .message_repository import MessageRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PointsRepository",
    "WorksheetRepository",
    "CartRepository",
    "PurchaseRepository",
    "EventRepository",
    "DailyRepository",
    "NotificationRepository",
    "MessageRepository",
]

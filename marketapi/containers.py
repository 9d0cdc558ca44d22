from dependency_injector import containers, providers

from marketapi.config import Settings
from marketapi.database.session import get_db
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


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    storage_service = providers.Factory(StorageService, settings=config.config)
    ai_service = providers.Factory(AiService, settings=config.config)
    auth_service = providers.Factory(AuthService, db=repositories.get_db, settings=config.config)
    user_service = providers.Factory(UserService, db=repositories.get_db)
    point_service = providers.Factory(PointService, db=repositories.get_db)
    worksheet_service = providers.Factory(
        WorksheetService, db=repositories.get_db, storage_service=storage_service
    )
    cart_service = providers.Factory(CartService, db=repositories.get_db)
    purchase_service = providers.Factory(PurchaseService, db=repositories.get_db)
    daily_reward_service = providers.Factory(
        DailyRewardService, db=repositories.get_db, settings=config.config
    )
    event_service = providers.Factory(EventService, db=repositories.get_db, ai_service=ai_service)
    admin_event_service = providers.Factory(
        AdminEventService, db=repositories.get_db, ai_service=ai_service
    )
    notification_service = providers.Factory(NotificationService, db=repositories.get_db)
    message_service = providers.Factory(MessageService, db=repositories.get_db)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "marketapi.routers.auth_router",
            "marketapi.routers.user_router",
            "marketapi.routers.point_router",
            "marketapi.routers.worksheet_router",
            "marketapi.routers.cart_router",
            "marketapi.routers.purchase_router",
            "marketapi.routers.daily_router",
            "marketapi.routers.event_router",
            "marketapi.routers.admin_router",
            "marketapi.routers.notification_router",
            "marketapi.routers.message_router",
            "marketapi.routers.storage_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )

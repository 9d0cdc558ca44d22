import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from marketapi import containers
from marketapi.config import settings
from marketapi.core.exception_handlers import (
    handle_base_api_exception,
    handle_http_exception,
    handle_integrity_error,
    handle_unexpected_error,
    handle_validation_error,
)
from marketapi.core.exceptions import BaseAPIException
from marketapi.core.logging_middleware import LoggingMiddleware
from marketapi.routers import (
    admin_router,
    auth_router,
    cart_router,
    daily_router,
    event_router,
    health_router,
    message_router,
    notification_router,
    point_router,
    purchase_router,
    storage_router,
    user_router,
    worksheet_router,
)
from marketapi.utils.config import init_logging

load_dotenv("marketapi/.env")
init_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG)
app.container = containers.Container()  # type: ignore

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(BaseAPIException, handle_base_api_exception)
app.add_exception_handler(StarletteHTTPException, handle_http_exception)
app.add_exception_handler(RequestValidationError, handle_validation_error)
app.add_exception_handler(IntegrityError, handle_integrity_error)
app.add_exception_handler(Exception, handle_unexpected_error)


@app.get("/")
def hello() -> dict:
    return {"message": settings.PROJECT_NAME}


app.include_router(health_router.router)

for api_router in (
    auth_router.router,
    user_router.router,
    point_router.router,
    worksheet_router.router,
    cart_router.router,
    purchase_router.router,
    daily_router.router,
    event_router.router,
    admin_router.router,
    notification_router.router,
    message_router.router,
    storage_router.router,
):
    app.include_router(api_router, prefix=settings.API_V1_STR)

handler = Mangum(app)

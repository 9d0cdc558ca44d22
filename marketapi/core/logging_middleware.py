import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# marketapi 로거 -> JSON 핸들러
logger = logging.getLogger("marketapi")

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000.0


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 + 요청 ID 전파"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        start = time.perf_counter()
        label = f"[{request_id}] {request.method} {request.url.path}"
        client = request.client.host if request.client else "-"

        logger.info(f"[Request] {label} from {client}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[Unhandled Error] {label} from {client}")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        summary = f"[Response] {label} -> {response.status_code} in {duration_ms:.1f}ms"
        if response.status_code >= 500:
            logger.error(summary)
        elif response.status_code >= 400:
            logger.warning(summary)
        elif duration_ms > SLOW_REQUEST_MS:
            logger.warning(f"{summary} (slow)")
        else:
            logger.info(summary)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

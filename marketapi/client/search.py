import itertools
import logging
import threading
from typing import Any, Dict, Optional

import httpx

from marketapi.client.config import ClientSettings
from marketapi.client.errors import from_response
from marketapi.schemas.worksheet import WorksheetListResponse

logger = logging.getLogger(__name__)


class LatestRequestGuard:
    """같은 화면에서 나중에 시작한 요청의 결과만 유효하게 취급"""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            self._latest = next(self._counter)
            return self._latest

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return ticket == self._latest


class ListingSearch:
    """자료 검색 - 이후 검색이 시작된 뒤 도착한 응답은 버림 (None 반환)"""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings or ClientSettings()
        self._http = httpx.Client(
            base_url=self.settings.BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.guard = LatestRequestGuard()

    def search(self, **filters: Any) -> Optional[WorksheetListResponse]:
        ticket = self.guard.begin()
        params: Dict[str, Any] = {key: value for key, value in filters.items() if value is not None}
        response = self._http.get("/worksheets", params=params)

        if not self.guard.is_current(ticket):
            logger.debug(f"Discarded stale search result (ticket {ticket})")
            return None
        if response.is_error:
            raise from_response(response)
        return WorksheetListResponse.model_validate(response.json())

    def close(self) -> None:
        self._http.close()

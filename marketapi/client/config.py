from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """마켓 API 클라이언트 설정 (MARKET_CLIENT_ 접두사 환경변수)"""

    model_config = SettingsConfigDict(env_prefix="MARKET_CLIENT_", extra="ignore")

    BASE_URL: str = "http://localhost:8000/api/v1"
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    # 세션 초기화 제한 시간 - 초과 시 비로그인 상태로 결정
    INIT_TIMEOUT_SECONDS: float = 5.0
    AUTH_EVENT_DEBOUNCE_SECONDS: float = 0.3
    CACHE_PATH: Optional[str] = None

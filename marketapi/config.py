from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional, Tuple
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="marketapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Worksheet Market API"
    PROJECT_NAME: str = "Worksheet Market API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "postgres"

    # 설정되어 있으면 POSTGRES_* 값보다 우선
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # AWS
    AWS_REGION: str = "ap-northeast-2"
    AWS_S3_ACCESS_KEY_ID: Optional[str] = None
    AWS_S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_WORKSHEET_BUCKET: str = "worksheets"
    S3_PREVIEW_BUCKET: str = "previews"
    SIGNED_URL_EXPIRE_SECONDS: int = 3600  # 다운로드 서명 URL 유효 시간 (초)

    # Upload limits
    MAX_WORKSHEET_FILE_BYTES: int = 50 * 1024 * 1024  # 50MB
    MAX_PREVIEW_FILE_BYTES: int = 5 * 1024 * 1024  # 5MB

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_API_URL: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    GEMINI_QUIZ_TIMEOUT_SECONDS: float = 30.0
    GEMINI_SCORE_TIMEOUT_SECONDS: float = 15.0

    # Point Management
    SIGNUP_BONUS_POINTS: int = 1000  # 신규 가입 보너스 포인트
    MIN_WORKSHEET_PRICE: int = 100  # 자료 최소 가격
    MAX_WORKSHEET_PRICE: int = 500  # 자료 최대 가격
    FEEDBACK_REFUND_POINTS: int = 30  # 후기 작성 보상

    # Daily Rewards
    ATTENDANCE_BASE_POINTS: int = 10  # 출석 기본 포인트
    # (연속 출석 일수, 보너스) - 큰 마일스톤부터
    ATTENDANCE_STREAK_BONUSES: List[Tuple[int, int]] = [(30, 50), (7, 20)]
    ROULETTE_PRIZES: List[int] = [5, 10, 15, 20, 30, 50]
    ROULETTE_WEIGHTS: List[int] = [30, 25, 20, 15, 7, 3]  # 합계 100

    # Events
    DEFAULT_EVENT_POINTS: int = 50

    # Listing
    LISTING_PAGE_SIZE: int = 12

    # Timezone
    TIMEZONE: str = "Asia/Seoul"


settings = Settings()

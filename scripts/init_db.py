import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marketapi.config import settings
from marketapi.database.connection import engine
from marketapi.models import daily, event, message, points, user, worksheet  # noqa: F401
from marketapi.models.base import Base


def init_db():
    """데이터베이스 테이블 생성"""
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized successfully ({settings.ENVIRONMENT})")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()

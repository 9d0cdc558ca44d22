"""
초기 데이터 시드 스크립트
관리자 계정과 예시 출석/선착순 이벤트를 생성
"""

import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone

from marketapi.database.connection import SessionLocal
from marketapi.models.event import EventStatus, EventType
from marketapi.models.user import UserRole
from marketapi.repositories.event_repository import EventRepository
from marketapi.repositories.user_repository import UserRepository
from marketapi.utils.passwords import hash_password

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "change-me-please")


def seed_admin(db) -> int:
    """관리자 계정 생성 (이미 있으면 건너뜀)"""
    user_repo = UserRepository(db)
    existing = user_repo.get_by_email(ADMIN_EMAIL)
    if existing:
        print(f"Admin already exists: {ADMIN_EMAIL}")
        return existing.id

    admin = user_repo.create_local_user(
        email=ADMIN_EMAIL,
        nickname="관리자",
        password_hash=hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN.value,
    )
    print(f"Created admin {admin.id}: {ADMIN_EMAIL}")
    return admin.id


def seed_events(db, admin_id: int) -> None:
    """예시 선착순 이벤트 (작성 중 상태)"""
    event_repo = EventRepository(db)
    if event_repo.list_by_status(None):
        print("Events already seeded")
        return

    now = datetime.now(timezone.utc)
    event = event_repo.create(
        created_by=admin_id,
        type=EventType.FIRST_COME.value,
        title="오픈 기념 선착순 이벤트",
        description="선착순 100명에게 포인트를 드립니다.",
        status=EventStatus.DRAFT.value,
        start_at=now,
        end_at=now + timedelta(days=7),
        max_participants=100,
        points_reward=100,
    )
    print(f"Created event {event.id}: {event.title}")


def main():
    db = SessionLocal()
    try:
        admin_id = seed_admin(db)
        seed_events(db, admin_id)
    finally:
        db.close()


if __name__ == "__main__":
    main()

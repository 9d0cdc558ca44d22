import itertools
import os

# 설정 로드 전에 테스트용 메모리 DB 지정
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest

from marketapi.database.connection import SessionLocal, engine
from marketapi.models import daily, event, message, points, user, worksheet  # noqa: F401
from marketapi.models.base import Base
from marketapi.models.points import PointTransactionType
from marketapi.repositories.points_repository import PointsRepository
from marketapi.repositories.user_repository import UserRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
from marketapi.utils.passwords import hash_password

TEST_PASSWORD = "password123"


@pytest.fixture
def db():
    """테스트마다 새 스키마를 가진 세션"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    """사용자 생성 - points만큼 원장 거래로 충전"""
    counter = itertools.count(1)
    password_hash = hash_password(TEST_PASSWORD)

    def _make(points: int = 0, role: str = "teacher"):
        n = next(counter)
        user_repo = UserRepository(db)
        created = user_repo.create_local_user(
            email=f"user{n}@example.com",
            nickname=f"user{n}",
            password_hash=password_hash,
            role=role,
            commit=False,
        )
        if points:
            PointsRepository(db).apply(
                user_id=created.id,
                amount=points,
                type=PointTransactionType.ADMIN_CHARGE.value,
                description="테스트 충전",
            )
        db.commit()
        return user_repo.get_by_id(created.id)

    return _make


@pytest.fixture
def make_worksheet(db):
    """승인된 판매 자료 생성"""
    counter = itertools.count(1)

    def _make(seller_id: int, price: int = 100, title: str = None, status: str = "approved"):
        n = next(counter)
        return WorksheetRepository(db).create(
            seller_id=seller_id,
            title=title or f"수학 학습지 {n}",
            description="초등 3학년 분수 연습 문제 모음입니다.",
            price=price,
            grade="elementary_3",
            subject="math",
            category="worksheet",
            tags=["분수"],
            file_url=f"{seller_id}/elementary_3_math_worksheet_{n}.pdf",
            preview_image=f"https://previews.example.com/{n}.png",
            page_count=2,
            status=status,
        )

    return _make

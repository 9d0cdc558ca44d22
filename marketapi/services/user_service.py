import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.core.exceptions import ConflictError, NotFoundError
from marketapi.repositories.purchase_repository import PurchaseRepository
from marketapi.repositories.user_repository import UserRepository
from marketapi.repositories.worksheet_repository import WorksheetRepository
from marketapi.schemas.user import (
    InterestsRequest,
    InterestsResponse,
    MySummaryResponse,
    User as UserSchema,
    UserProfile,
)

logger = logging.getLogger(__name__)


class UserService:
    """사용자 프로필/마이페이지 서비스"""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)
        self.purchase_repo = PurchaseRepository(db)
        self.worksheet_repo = WorksheetRepository(db)

    def get_user(self, user_id: int) -> UserSchema:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("사용자를 찾을 수 없습니다.")
        return user

    def get_profile(self, user_id: int) -> UserProfile:
        profile = self.user_repo.get_user_profile(user_id)
        if not profile:
            raise NotFoundError("사용자를 찾을 수 없습니다.")
        return profile

    def update_nickname(self, user_id: int, nickname: str) -> UserSchema:
        """닉네임 변경 - 다른 사용자가 쓰는 닉네임이면 ConflictError"""
        if self.user_repo.nickname_taken(nickname, exclude_user_id=user_id):
            raise ConflictError("이미 사용 중인 닉네임입니다.")
        try:
            user = self.user_repo.update(user_id, nickname=nickname)
        except IntegrityError:
            raise ConflictError("이미 사용 중인 닉네임입니다.")
        if not user:
            raise NotFoundError("사용자를 찾을 수 없습니다.")
        logger.info(f"User {user_id} changed nickname")
        return user

    def get_summary(self, user_id: int) -> MySummaryResponse:
        """마이페이지 요약 (포인트, 구매 수, 등록 자료 수, 판매 실적)"""
        user = self.get_user(user_id)
        total_sales, total_earnings = self.purchase_repo.seller_totals(user_id)
        return MySummaryResponse(
            points=user.points,
            purchase_count=self.purchase_repo.count_for_buyer(user_id),
            worksheet_count=self.worksheet_repo.count({"seller_id": user_id}),
            total_sales=total_sales,
            total_earnings=total_earnings,
        )

    def get_interests(self, user_id: int) -> InterestsResponse:
        return self.user_repo.get_interests(user_id)

    def update_interests(self, user_id: int, request: InterestsRequest) -> InterestsResponse:
        result = self.user_repo.upsert_interests(
            user_id, grades=request.grades, subjects=request.subjects
        )
        logger.info(f"User {user_id} updated interests: {result.grades}")
        return result

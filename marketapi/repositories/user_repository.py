from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from marketapi.models.message import UserInterest as UserInterestModel
from marketapi.models.user import User as UserModel
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.user import InterestsResponse, User as UserSchema, UserProfile


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_email(self, email: str) -> Optional[UserSchema]:
        """이메일로 사용자 조회"""
        return self.get_by_field("email", email.lower())

    def get_model_by_email(self, email: str) -> Optional[UserModel]:
        """비밀번호 검증용 - 해시를 포함한 ORM 인스턴스"""
        self._ensure_clean_session()
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.email == email.lower())
            .first()
        )

    def nickname_taken(self, nickname: str, exclude_user_id: Optional[int] = None) -> bool:
        query = self.db.query(self.model_class).filter(
            self.model_class.nickname == nickname
        )
        if exclude_user_id is not None:
            query = query.filter(self.model_class.id != exclude_user_id)
        return query.first() is not None

    def create_local_user(
        self,
        email: str,
        nickname: str,
        password_hash: str,
        role: str,
        commit: bool = True,
    ) -> Optional[UserSchema]:
        """이메일/비밀번호 사용자 생성 (잔액 0으로 시작, 가입 보너스는 원장으로 지급)"""
        return self.create(
            commit=commit,
            email=email.lower(),
            nickname=nickname,
            password_hash=password_hash,
            role=role,
            points=0,
            is_active=True,
        )

    def update_last_login(
        self, user_id: int, login_time: Optional[datetime] = None
    ) -> Optional[UserSchema]:
        """마지막 로그인 시간 업데이트"""
        if login_time is None:
            login_time = datetime.now(timezone.utc)

        return self.update(user_id, last_login_at=login_time)

    def get_user_profile(self, user_id: int) -> Optional[UserProfile]:
        model_instance = self.get_model(user_id)
        if model_instance is None:
            return None
        return UserProfile.model_validate(model_instance)

    def get_nicknames(self, user_ids: List[int]) -> dict:
        """사용자 ID → 닉네임 매핑"""
        if not user_ids:
            return {}
        rows = (
            self.db.query(self.model_class.id, self.model_class.nickname)
            .filter(self.model_class.id.in_(set(user_ids)))
            .all()
        )
        return {row.id: row.nickname for row in rows}

    def get_admin_ids(self) -> List[int]:
        rows = (
            self.db.query(self.model_class.id)
            .filter(self.model_class.role == "admin")
            .all()
        )
        return [row.id for row in rows]

    # 관심 학년/과목

    def get_interests(self, user_id: int) -> InterestsResponse:
        interest = (
            self.db.query(UserInterestModel)
            .filter(UserInterestModel.user_id == user_id)
            .first()
        )
        if interest is None:
            return InterestsResponse()
        return InterestsResponse(
            grades=interest.grades or [], subjects=interest.subjects or []
        )

    def upsert_interests(
        self, user_id: int, grades: List[str], subjects: List[str]
    ) -> InterestsResponse:
        interest = (
            self.db.query(UserInterestModel)
            .filter(UserInterestModel.user_id == user_id)
            .first()
        )
        if interest is None:
            interest = UserInterestModel(user_id=user_id)
            self.db.add(interest)
        interest.grades = list(grades)
        interest.subjects = list(subjects)
        try:
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return InterestsResponse(grades=interest.grades, subjects=interest.subjects)

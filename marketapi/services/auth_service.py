import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.config import Settings
from marketapi.core.exceptions import AuthenticationError, ConflictError
from marketapi.core.security import create_access_token, decode_access_token
from marketapi.models.points import PointTransactionType
from marketapi.repositories.user_repository import UserRepository
from marketapi.schemas.auth import AuthResponse, LoginRequest, SignupRequest, TokenData
from marketapi.schemas.user import User as UserSchema
from marketapi.services.point_service import PointService
from marketapi.utils.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """인증 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.user_repo = UserRepository(db)
        self.point_service = PointService(db)
        self.settings = settings

    def _issue_token(self, user: UserSchema) -> AuthResponse:
        token = create_access_token(
            data={"sub": user.email, "user_id": user.id, "role": user.role.value}
        )
        return AuthResponse(access_token=token, user=user)

    def signup(self, request: SignupRequest) -> AuthResponse:
        """이메일 회원가입

        계정 생성과 가입 보너스 지급을 하나의 트랜잭션으로 처리합니다.
        역할은 teacher/parent만 허용되며 관리자는 스스로 선택할 수 없습니다.
        """
        if self.user_repo.get_by_email(request.email):
            raise ConflictError("이미 가입된 이메일입니다.")
        if self.user_repo.nickname_taken(request.nickname):
            raise ConflictError("이미 사용 중인 닉네임입니다.")

        try:
            user = self.user_repo.create_local_user(
                email=request.email,
                nickname=request.nickname,
                password_hash=hash_password(request.password),
                role=request.role,
                commit=False,
            )
            self.point_service.apply(
                user_id=user.id,
                amount=self.settings.SIGNUP_BONUS_POINTS,
                type=PointTransactionType.SIGNUP_BONUS,
                description="회원가입 보너스",
                ref_id=f"signup_bonus_{user.id}",
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("이미 가입된 이메일 또는 닉네임입니다.")

        user = self.user_repo.get_by_id(user.id)
        logger.info(f"New user signed up: {user.id} ({user.role.value})")
        return self._issue_token(user)

    def login(self, request: LoginRequest) -> AuthResponse:
        """이메일/비밀번호 로그인"""
        model = self.user_repo.get_model_by_email(request.email)
        if model is None or not verify_password(request.password, model.password_hash):
            logger.warning(f"Failed login attempt for {request.email}")
            raise AuthenticationError("이메일 또는 비밀번호가 올바르지 않습니다.")
        if not model.is_active:
            raise AuthenticationError("비활성화된 계정입니다.")

        user = self.user_repo.update_last_login(model.id)
        logger.info(f"User logged in: {user.id}")
        return self._issue_token(user)

    def verify_token(self, token: str) -> Optional[TokenData]:
        """JWT 토큰 검증"""
        payload = decode_access_token(token)
        user_id = payload.get("user_id")
        if user_id is None:
            raise AuthenticationError("유효하지 않은 토큰입니다.")
        return TokenData(email=payload.get("sub"), user_id=user_id)

    def get_current_user(self, token: str) -> Optional[UserSchema]:
        """토큰으로 현재 사용자 조회"""
        token_data = self.verify_token(token)
        user = self.user_repo.get_by_id(token_data.user_id)
        if not user:
            raise AuthenticationError("사용자를 찾을 수 없습니다.")
        return user

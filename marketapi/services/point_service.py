import logging
from typing import Optional

from sqlalchemy.orm import Session

from marketapi.core.exceptions import (
    BaseAPIException,
    InternalServerError,
)
from marketapi.models.points import PointTransactionType
from marketapi.repositories.points_repository import PointsRepository
from marketapi.schemas.points import (
    AdminChargeRequest,
    PointsBalanceResponse,
    PointsIntegrityCheckResponse,
    PointsLedgerResponse,
    PointTransactionEntry,
)

logger = logging.getLogger(__name__)


class PointService:
    """포인트 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session):
        self.db = db
        self.points_repo = PointsRepository(db)

    def get_user_balance(self, user_id: int) -> PointsBalanceResponse:
        """사용자 포인트 잔액 조회"""
        balance = self.points_repo.get_user_balance(user_id)
        logger.info(f"Retrieved balance for user {user_id}: {balance}")
        return PointsBalanceResponse(balance=balance)

    def get_user_ledger(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> PointsLedgerResponse:
        """사용자 포인트 거래 내역 조회

        Args:
            user_id: 사용자 ID
            limit: 페이지 크기 (최대 100)
            offset: 오프셋

        Returns:
            PointsLedgerResponse: 포인트 거래 내역 (최신순)
        """
        limit = max(1, min(limit, 100))
        offset = max(0, offset)

        ledger = self.points_repo.get_user_ledger(
            user_id=user_id, limit=limit, offset=offset
        )
        logger.info(f"Retrieved ledger for user {user_id}: {ledger.total_count} entries")
        return ledger

    def apply(
        self,
        user_id: int,
        amount: int,
        type: PointTransactionType,
        description: str,
        related_id: Optional[int] = None,
        ref_id: Optional[str] = None,
    ) -> PointTransactionEntry:
        """잔액 변경 + 원장 기록 (커밋하지 않음 - 호출 서비스의 트랜잭션에 포함)"""
        return self.points_repo.apply(
            user_id=user_id,
            amount=amount,
            type=type.value,
            description=description,
            related_id=related_id,
            ref_id=ref_id,
        )

    def admin_charge(self, admin_id: int, request: AdminChargeRequest) -> PointTransactionEntry:
        """관리자 포인트 조정

        양수면 지급, 음수면 차감. 차감 후 잔액이 음수가 되면 InsufficientBalanceError.
        """
        try:
            entry = self.apply(
                user_id=request.user_id,
                amount=request.amount,
                type=PointTransactionType.ADMIN_CHARGE,
                description=f"관리자 조정: {request.reason}",
                related_id=admin_id,
            )
            self.db.commit()
            logger.info(
                f"Admin {admin_id} adjusted points for user {request.user_id}: {request.amount}"
            )
            return entry
        except BaseAPIException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed admin adjustment for user {request.user_id}: {str(e)}")
            raise InternalServerError("포인트 조정에 실패했습니다.")

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """특정 사용자 포인트 정합성 검증"""
        result = self.points_repo.verify_integrity_for_user(user_id)
        if result.status != "OK":
            logger.error(
                f"Points integrity mismatch for user {user_id}: "
                f"stored={result.stored_balance}, calculated={result.calculated_balance}, "
                f"recorded={result.recorded_balance}"
            )
        return result

    def verify_global_integrity(self) -> PointsIntegrityCheckResponse:
        """전체 시스템 포인트 정합성 검증"""
        result = self.points_repo.verify_global_integrity()
        if result.status != "OK":
            logger.error(
                f"Global points integrity mismatch: users={result.mismatched_user_ids}"
            )
        else:
            logger.info(f"Global points integrity OK ({result.user_count} users)")
        return result

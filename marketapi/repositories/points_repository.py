"""
포인트 리포지토리 - 잔액 변경과 원장 기록

이 파일은 포인트 시스템의 핵심 데이터 접근 로직을 담당합니다:
1. 잔액 증감 (users.points 조건부 UPDATE)
2. 원장 기록 (point_transactions 한 행)
3. 멱등성 보장 (ref_id 중복 처리 방지)
4. 거래 내역 조회
5. 데이터 정합성 검증

핵심 특징:
- 잔액 변경은 `points + delta >= 0` 조건이 붙은 단일 UPDATE로 수행되어
  동시 요청에서도 음수 잔액이 발생하지 않습니다
- apply()는 기본적으로 커밋하지 않으며, 서비스가 하나의 트랜잭션으로 묶어 커밋합니다
- 각 거래 후 새로운 잔액이 balance_after로 함께 기록됩니다
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc, func, update
from sqlalchemy.orm import Session

from marketapi.core.exceptions import InsufficientBalanceError, NotFoundError
from marketapi.models.points import PointTransaction as PointTransactionModel
from marketapi.models.user import User as UserModel
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.points import (
    PointsIntegrityCheckResponse,
    PointsLedgerResponse,
    PointTransactionEntry,
)


class PointsRepository(BaseRepository[PointTransactionModel, PointTransactionEntry]):
    """
    포인트 리포지토리 - 포인트 관련 모든 데이터베이스 작업 처리

    주요 기능:
    1. 원자성 - 잔액 UPDATE와 원장 INSERT가 같은 트랜잭션에서 수행
    2. 멱등성 - ref_id가 같은 거래는 한 번만 기록
    3. 완전한 감사 추적 - 모든 포인트 변동 기록
    """

    def __init__(self, db: Session):
        super().__init__(PointTransactionModel, PointTransactionEntry, db)

    def get_user_balance(self, user_id: int) -> int:
        """
        사용자의 현재 포인트 잔액 조회

        users.points가 기준 잔액이며, 원장과의 일치 여부는 verify_integrity_for_user로 확인합니다.
        """
        balance = (
            self.db.query(UserModel.points).filter(UserModel.id == user_id).scalar()
        )
        if balance is None:
            raise NotFoundError("사용자를 찾을 수 없습니다.")
        return balance

    def apply(
        self,
        user_id: int,
        amount: int,
        type: str,
        description: str,
        related_id: Optional[int] = None,
        ref_id: Optional[str] = None,
        commit: bool = False,
    ) -> PointTransactionEntry:
        """
        포인트 거래 처리의 핵심 로직

        Args:
            user_id: 대상 사용자 ID
            amount: 포인트 변동량 (양수=증가, 음수=감소)
            type: PointTransactionType 값
            description: 거래 설명
            related_id: 관련 엔티티 ID
            ref_id: 중복 방지용 고유 참조 ID (선택)
            commit: True면 즉시 커밋 (기본값은 호출자가 커밋)

        Raises:
            InsufficientBalanceError: 차감 후 잔액이 음수가 되는 경우
            NotFoundError: 사용자가 없는 경우

        멱등성:
        - 동일한 ref_id로 여러 번 호출해도 한 번만 처리되며 기존 거래를 반환
        """
        if ref_id:
            existing = (
                self.db.query(self.model_class)
                .filter(self.model_class.ref_id == ref_id)
                .first()
            )
            if existing:
                return self._to_schema(existing)

        # 조건부 UPDATE - 잔액이 음수가 되는 경우 0행 갱신
        result = self.db.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .where(UserModel.points + amount >= 0)
            .values(points=UserModel.points + amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = (
                self.db.query(UserModel.points).filter(UserModel.id == user_id).scalar()
            )
            if current is None:
                raise NotFoundError("사용자를 찾을 수 없습니다.")
            raise InsufficientBalanceError(
                details={"balance": current, "required": -amount}
            )

        new_balance = self.get_user_balance(user_id)

        entry = self.model_class(
            user_id=user_id,
            type=type,
            amount=amount,
            balance_after=new_balance,
            description=description,
            related_id=related_id,
            ref_id=ref_id,
        )
        self.db.add(entry)
        self.db.flush()
        if commit:
            self.db.commit()
        return self._to_schema(entry)

    def get_user_ledger(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> PointsLedgerResponse:
        """사용자 포인트 원장 조회 (페이징, 최신순)"""
        self._ensure_clean_session()
        base_query = self.db.query(self.model_class).filter(
            self.model_class.user_id == user_id
        )
        total_count = base_query.count()

        model_instances = (
            base_query.order_by(desc(self.model_class.id))
            .limit(limit)
            .offset(offset)
            .all()
        )

        return PointsLedgerResponse(
            balance=self.get_user_balance(user_id),
            entries=self._to_schemas(model_instances),
            total_count=total_count,
            has_next=offset + limit < total_count,
        )

    def verify_integrity_for_user(self, user_id: int) -> PointsIntegrityCheckResponse:
        """
        특정 사용자의 포인트 정합성 검증

        검증 방식:
        1. users.points (저장된 잔액)
        2. 모든 거래의 amount 합계
        3. 최신 거래의 balance_after
        세 값이 모두 같아야 OK
        """
        stored_balance = self.get_user_balance(user_id)

        calculated_balance, entry_count = (
            self.db.query(
                func.coalesce(func.sum(self.model_class.amount), 0),
                func.count(self.model_class.id),
            )
            .filter(self.model_class.user_id == user_id)
            .one()
        )

        latest = (
            self.db.query(self.model_class.balance_after)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.id))
            .first()
        )
        recorded_balance = latest.balance_after if latest else 0

        consistent = stored_balance == int(calculated_balance) == recorded_balance
        return PointsIntegrityCheckResponse(
            status="OK" if consistent else "MISMATCH",
            user_id=user_id,
            stored_balance=stored_balance,
            calculated_balance=int(calculated_balance),
            recorded_balance=recorded_balance,
            entry_count=entry_count,
            mismatched_user_ids=[] if consistent else [user_id],
            verified_at=datetime.now(timezone.utc),
        )

    def verify_global_integrity(self) -> PointsIntegrityCheckResponse:
        """
        전체 시스템의 포인트 정합성 검증

        모든 사용자에 대해 users.points, 거래 합계, 최신 balance_after를 비교합니다.
        대량 데이터에서는 시간이 걸릴 수 있어 관리자 전용입니다.
        """
        sums = dict(
            self.db.query(self.model_class.user_id, func.sum(self.model_class.amount))
            .group_by(self.model_class.user_id)
            .all()
        )

        latest_ids = self.db.query(func.max(self.model_class.id)).group_by(
            self.model_class.user_id
        )
        latest_balances = dict(
            self.db.query(self.model_class.user_id, self.model_class.balance_after)
            .filter(self.model_class.id.in_(latest_ids))
            .all()
        )

        users = self.db.query(UserModel.id, UserModel.points).all()
        mismatched = [
            row.id
            for row in users
            if not (
                row.points
                == int(sums.get(row.id, 0) or 0)
                == latest_balances.get(row.id, 0)
            )
        ]
        entry_count = self.db.query(func.count(self.model_class.id)).scalar() or 0

        return PointsIntegrityCheckResponse(
            status="OK" if not mismatched else "MISMATCH",
            stored_balance=sum(row.points for row in users),
            calculated_balance=int(sum(int(v or 0) for v in sums.values())),
            entry_count=entry_count,
            user_count=len(users),
            mismatched_user_ids=mismatched,
            verified_at=datetime.now(timezone.utc),
        )

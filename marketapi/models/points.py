"""
포인트 시스템 데이터 모델

이 파일은 사용자 포인트의 모든 거래 내역을 저장하는 원장(Ledger) 테이블을 정의합니다.
가입 보너스, 구매, 판매 수익, 후기 보상, 출석, 룰렛, 이벤트 보상 등
잔액이 바뀌는 모든 사건은 이 테이블에 정확히 한 행으로 기록됩니다.
"""

import enum

from sqlalchemy import Column, BigInteger, Integer, Text, String, ForeignKey, Index
from sqlalchemy.schema import UniqueConstraint
from marketapi.models.base import BaseModel, BigIntPK


class PointTransactionType(str, enum.Enum):
    SIGNUP_BONUS = "signup_bonus"  # 가입 보너스
    PURCHASE = "purchase"  # 자료 구매 (차감)
    SALE = "sale"  # 자료 판매 수익
    FEEDBACK_REFUND = "feedback_refund"  # 후기 작성 보상
    ADMIN_CHARGE = "admin_charge"  # 관리자 조정
    ATTENDANCE = "attendance"  # 출석 체크
    ROULETTE = "roulette"  # 일일 룰렛
    EVENT = "event"  # 이벤트 보상


class PointTransaction(BaseModel):
    """
    포인트 원장 테이블 - 모든 포인트 거래 내역을 저장

    이 테이블은 다음 원칙을 따릅니다:
    1. 불변성(Immutable): 한번 생성된 레코드는 수정되지 않음
    2. 완전성(Complete): 모든 포인트 변동사항이 기록됨
    3. 멱등성(Idempotent): ref_id가 있으면 같은 거래가 두 번 기록되지 않음
    4. 정합성(Integrity): users.points == SUM(amount) == 마지막 balance_after
    """

    __tablename__ = "point_transactions"
    __table_args__ = (
        UniqueConstraint("ref_id", name="uq_point_transactions_ref_id"),
        Index("idx_transactions_user", "user_id"),
    )

    # 기본 키 - 자동 증가하는 고유 식별자
    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # 사용자 ID - users 테이블과의 외래키 관계
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False)

    # 거래 유형 - PointTransactionType 값
    type = Column(String(30), nullable=False)

    # 포인트 변동량 - 양수면 증가, 음수면 감소
    amount = Column(Integer, nullable=False)

    # 거래 후 잔액 - 이 거래 완료 후의 총 포인트 잔액
    balance_after = Column(Integer, nullable=False)

    # 거래 설명 (예: "워크시트 구매", "출석 체크 (3일 연속)")
    description = Column(Text, nullable=False)

    # 관련 엔티티 ID (구매, 후기, 이벤트 참여 등)
    related_id = Column(BigInteger, nullable=True)

    # 참조 ID - 중복 처리 방지용 고유 식별자
    # 형식 예시: "signup_bonus_12", "feedback_refund_34", "event_approval_56"
    ref_id = Column(Text, nullable=True)

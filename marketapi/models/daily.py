from datetime import date

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from marketapi.models.base import BaseModel, BigIntPK


class Attendance(BaseModel):
    """일일 출석 기록 - (사용자, 날짜)당 최대 1건"""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "check_date", name="uq_attendance_user_date"),
        Index("idx_attendance_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    check_date: Mapped[date] = mapped_column(Date, nullable=False)
    streak: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    base_points: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False)


class RouletteSpin(BaseModel):
    """일일 룰렛 기록 - (사용자, 날짜)당 최대 1건"""

    __tablename__ = "roulette_history"
    __table_args__ = (
        UniqueConstraint("user_id", "spin_date", name="uq_roulette_user_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    spin_date: Mapped[date] = mapped_column(Date, nullable=False)
    points_won: Mapped[int] = mapped_column(Integer, nullable=False)

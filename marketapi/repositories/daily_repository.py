from datetime import date
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import desc
from sqlalchemy.orm import Session

from marketapi.models.daily import Attendance as AttendanceModel, RouletteSpin as RouletteModel
from marketapi.repositories.base import BaseRepository
from marketapi.schemas.daily import AttendanceRecord


class RouletteRecord(BaseModel):
    id: int
    user_id: int
    spin_date: date
    points_won: int

    class Config:
        from_attributes = True


class DailyRepository(BaseRepository[AttendanceModel, AttendanceRecord]):
    """출석/룰렛 기록 리포지토리 - 쓰기는 모두 커밋하지 않음"""

    def __init__(self, db: Session):
        super().__init__(AttendanceModel, AttendanceRecord, db)

    def get_attendance(self, user_id: int, check_date: date) -> Optional[AttendanceRecord]:
        self._ensure_clean_session()
        instance = (
            self.db.query(AttendanceModel)
            .filter(
                AttendanceModel.user_id == user_id,
                AttendanceModel.check_date == check_date,
            )
            .first()
        )
        return self._to_schema(instance)

    def create_attendance(
        self,
        user_id: int,
        check_date: date,
        streak: int,
        base_points: int,
        bonus_points: int,
    ) -> AttendanceRecord:
        return self.create(
            commit=False,
            user_id=user_id,
            check_date=check_date,
            streak=streak,
            base_points=base_points,
            bonus_points=bonus_points,
            total_points=base_points + bonus_points,
        )

    def attendance_history(self, user_id: int, limit: int = 30) -> List[AttendanceRecord]:
        rows = (
            self.db.query(AttendanceModel)
            .filter(AttendanceModel.user_id == user_id)
            .order_by(desc(AttendanceModel.check_date))
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows)

    def get_spin(self, user_id: int, spin_date: date) -> Optional[RouletteRecord]:
        self._ensure_clean_session()
        instance = (
            self.db.query(RouletteModel)
            .filter(RouletteModel.user_id == user_id, RouletteModel.spin_date == spin_date)
            .first()
        )
        return RouletteRecord.model_validate(instance) if instance else None

    def create_spin(self, user_id: int, spin_date: date, points_won: int) -> RouletteRecord:
        spin = RouletteModel(user_id=user_id, spin_date=spin_date, points_won=points_won)
        self.db.add(spin)
        self.db.flush()
        self.db.refresh(spin)
        return RouletteRecord.model_validate(spin)

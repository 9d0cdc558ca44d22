import logging
import random
from datetime import date
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketapi.config import Settings, settings as default_settings
from marketapi.core.exceptions import (
    AlreadyCheckedInError,
    AlreadySpunError,
    BaseAPIException,
    InternalServerError,
)
from marketapi.models.points import PointTransactionType
from marketapi.repositories.daily_repository import DailyRepository
from marketapi.schemas.daily import (
    AttendanceRecord,
    AttendanceResponse,
    DailyStatusResponse,
    RouletteResponse,
)
from marketapi.services.point_service import PointService
from marketapi.utils.timezone_utils import get_current_kst_date, get_previous_kst_date

logger = logging.getLogger(__name__)


def streak_bonus(streak: int, milestones: Sequence[Tuple[int, int]]) -> int:
    """연속 출석 보너스 - 도달한 가장 높은 구간의 보너스 하나만 지급"""
    for threshold, bonus in sorted(milestones, reverse=True):
        if streak >= threshold:
            return bonus
    return 0


class DailyRewardService:
    """일일 출석 체크 & 룰렛 서비스

    날짜는 항상 서버의 KST 기준이며, (사용자, 날짜) 유니크 제약으로
    하루 1회만 지급됩니다.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.rng = rng or random.Random()
        self.daily_repo = DailyRepository(db)
        self.point_service = PointService(db)

    def check_attendance(self, user_id: int, today: Optional[date] = None) -> AttendanceResponse:
        today = today or get_current_kst_date()
        if self.daily_repo.get_attendance(user_id, today):
            raise AlreadyCheckedInError()

        yesterday = self.daily_repo.get_attendance(user_id, get_previous_kst_date(today))
        streak = yesterday.streak + 1 if yesterday else 1
        base = self.settings.ATTENDANCE_BASE_POINTS
        bonus = streak_bonus(streak, self.settings.ATTENDANCE_STREAK_BONUSES)
        description = f"출석 체크 ({streak}일 연속)"

        try:
            record = self.daily_repo.create_attendance(
                user_id=user_id,
                check_date=today,
                streak=streak,
                base_points=base,
                bonus_points=bonus,
            )
            entry = self.point_service.apply(
                user_id=user_id,
                amount=record.total_points,
                type=PointTransactionType.ATTENDANCE,
                description=description,
                ref_id=f"attendance_{user_id}_{today.isoformat()}",
            )
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadyCheckedInError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Attendance failed for user {user_id}: {str(e)}")
            raise InternalServerError("출석 체크에 실패했습니다.")

        logger.info(f"User {user_id} checked in on {today} (streak {streak}, +{record.total_points}P)")
        return AttendanceResponse(
            streak=streak,
            base_points=base,
            bonus_points=bonus,
            total_points=record.total_points,
            new_balance=entry.balance_after,
        )

    def _pick_prize(self) -> int:
        prizes = self.settings.ROULETTE_PRIZES
        indexes = list(range(len(prizes)))
        return self.rng.choices(indexes, weights=self.settings.ROULETTE_WEIGHTS, k=1)[0]

    def spin_roulette(self, user_id: int, today: Optional[date] = None) -> RouletteResponse:
        """룰렛 - 당첨 금액은 서버에서 먼저 확정하고 기록 후 응답"""
        today = today or get_current_kst_date()
        if self.daily_repo.get_spin(user_id, today):
            raise AlreadySpunError()

        prizes = list(self.settings.ROULETTE_PRIZES)
        index = self._pick_prize()
        points_won = prizes[index]

        try:
            self.daily_repo.create_spin(user_id, today, points_won)
            entry = self.point_service.apply(
                user_id=user_id,
                amount=points_won,
                type=PointTransactionType.ROULETTE,
                description=f"룰렛 당첨 ({points_won}P)",
                ref_id=f"roulette_{user_id}_{today.isoformat()}",
            )
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise AlreadySpunError()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Roulette failed for user {user_id}: {str(e)}")
            raise InternalServerError("룰렛 처리에 실패했습니다.")

        logger.info(f"User {user_id} won {points_won}P from roulette on {today}")
        return RouletteResponse(
            points_won=points_won,
            prize_index=index,
            prizes=prizes,
            new_balance=entry.balance_after,
        )

    def get_today_status(self, user_id: int, today: Optional[date] = None) -> DailyStatusResponse:
        today = today or get_current_kst_date()
        attendance = self.daily_repo.get_attendance(user_id, today)
        if attendance:
            current_streak = attendance.streak
        else:
            # 오늘 출석 전이면 어제까지의 연속 기록을 보여줌
            yesterday = self.daily_repo.get_attendance(user_id, get_previous_kst_date(today))
            current_streak = yesterday.streak if yesterday else 0

        spin = self.daily_repo.get_spin(user_id, today)
        return DailyStatusResponse(
            today=today,
            attended_today=attendance is not None,
            current_streak=current_streak,
            spun_today=spin is not None,
            today_prize=spin.points_won if spin else None,
        )

    def get_attendance_history(self, user_id: int, limit: int = 30) -> List[AttendanceRecord]:
        return self.daily_repo.attendance_history(user_id, max(1, min(limit, 100)))

"""
타임존 유틸리티

출석/룰렛의 '하루'는 서버의 한국 시간(KST) 날짜 기준으로 판정합니다.
"""

from datetime import date, datetime, timedelta, timezone

# 한국 표준시 (KST = UTC+9)
KST = timezone(timedelta(hours=9))


def get_kst_now() -> datetime:
    """현재 KST 시간을 반환합니다."""
    return datetime.now(KST)


def get_current_kst_date() -> date:
    """현재 KST 날짜를 반환합니다."""
    return get_kst_now().date()


def get_previous_kst_date(today: date) -> date:
    return today - timedelta(days=1)


def to_kst(dt: datetime) -> datetime:
    """UTC 또는 다른 타임존의 datetime을 KST로 변환합니다."""
    if dt.tzinfo is None:
        # naive datetime은 UTC로 가정
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(KST)


def format_storage_timestamp(dt: datetime) -> str:
    """저장 파일명용 타임스탬프 (YYYYMMDD_HHmmss, KST)"""
    return to_kst(dt).strftime("%Y%m%d_%H%M%S")

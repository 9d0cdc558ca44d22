"""
입력값 검증 유틸리티

스키마(field_validator)와 서비스 계층이 같은 규칙을 공유하기 위해 사용합니다.
모든 함수는 규칙 위반 시 ValueError를 발생시킵니다.
"""

import re
from typing import Optional

from marketapi.config import settings

NICKNAME_PATTERN = re.compile(r"^[가-힣a-zA-Z0-9_]+$")
NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 20

TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10

RATING_MIN = 1
RATING_MAX = 5
COMMENT_MIN_LENGTH = 5
COMMENT_MAX_LENGTH = 1000


def validate_nickname(nickname: str) -> str:
    value = (nickname or "").strip()
    if len(value) < NICKNAME_MIN_LENGTH or len(value) > NICKNAME_MAX_LENGTH:
        raise ValueError(
            f"닉네임은 {NICKNAME_MIN_LENGTH}~{NICKNAME_MAX_LENGTH}자여야 합니다."
        )
    if not NICKNAME_PATTERN.match(value):
        raise ValueError("닉네임은 한글, 영문, 숫자, 밑줄(_)만 사용할 수 있습니다.")
    return value


def validate_price(price: int) -> int:
    if (
        isinstance(price, bool)
        or not isinstance(price, int)
        or price < settings.MIN_WORKSHEET_PRICE
        or price > settings.MAX_WORKSHEET_PRICE
    ):
        raise ValueError(
            f"가격은 {settings.MIN_WORKSHEET_PRICE}~{settings.MAX_WORKSHEET_PRICE} 포인트 사이여야 합니다."
        )
    return price


def validate_title(title: str) -> str:
    value = (title or "").strip()
    if len(value) < TITLE_MIN_LENGTH or len(value) > TITLE_MAX_LENGTH:
        raise ValueError(
            f"제목은 {TITLE_MIN_LENGTH}~{TITLE_MAX_LENGTH}자여야 합니다."
        )
    return value


def validate_description(description: str) -> str:
    value = (description or "").strip()
    if len(value) < DESCRIPTION_MIN_LENGTH:
        raise ValueError(f"설명은 {DESCRIPTION_MIN_LENGTH}자 이상이어야 합니다.")
    return value


def validate_rating(rating: int) -> int:
    if (
        isinstance(rating, bool)
        or not isinstance(rating, int)
        or rating < RATING_MIN
        or rating > RATING_MAX
    ):
        raise ValueError(f"평점은 {RATING_MIN}~{RATING_MAX} 사이의 정수여야 합니다.")
    return rating


def validate_feedback_comment(comment: str) -> str:
    value = (comment or "").strip()
    if len(value) < COMMENT_MIN_LENGTH:
        raise ValueError(f"후기는 {COMMENT_MIN_LENGTH}자 이상 작성해주세요.")
    if len(value) > COMMENT_MAX_LENGTH:
        raise ValueError(f"후기는 {COMMENT_MAX_LENGTH}자를 넘을 수 없습니다.")
    return value


def escape_like_pattern(pattern: Optional[str]) -> str:
    """LIKE/ILIKE 검색어의 특수문자(%, _, \\) 이스케이프"""
    if not pattern:
        return ""
    return re.sub(r"([%_\\])", r"\\\1", pattern)

"""
클라이언트 오류 분류

서버 응답 본문 {"success": false, "error": {"code", "message", "details"}}의
code를 아래 예외 클래스로 변환합니다. 알 수 없는 코드는 내부 메시지를 노출하지 않는
UnknownError로 변환됩니다.
"""

from typing import Any, Dict, Optional, Type

import httpx

GENERIC_MESSAGE = "알 수 없는 오류가 발생했습니다."


class LedgerError(Exception):
    code = "UNKNOWN"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or GENERIC_MESSAGE
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)


class ValidationFailed(LedgerError):
    code = "VALIDATION_001"


class Unauthenticated(LedgerError):
    code = "AUTH_001"


class Forbidden(LedgerError):
    code = "AUTH_002"


class NotFound(LedgerError):
    code = "NOT_FOUND_001"


class Conflict(LedgerError):
    code = "CONFLICT_001"


class AlreadyDone(Conflict):
    code = "ALREADY_DONE"


class AlreadyCheckedIn(AlreadyDone):
    code = "ALREADY_CHECKED_IN"


class AlreadySpun(AlreadyDone):
    code = "ALREADY_SPUN"


class AlreadyReviewed(AlreadyDone):
    code = "ALREADY_REVIEWED"


class AlreadyDecided(AlreadyDone):
    code = "ALREADY_DECIDED"


class AlreadyNotified(AlreadyDone):
    code = "ALREADY_NOTIFIED"


class DuplicateLine(Conflict):
    code = "DUPLICATE_LINE"


class SelfPurchase(Conflict):
    code = "SELF_PURCHASE"


class AlreadyOwned(Conflict):
    code = "ALREADY_OWNED"


class EventFull(Conflict):
    code = "EVENT_FULL"


class InvalidState(Conflict):
    code = "INVALID_STATE"


class InsufficientBalance(LedgerError):
    code = "BALANCE_001"


class UpstreamFailure(LedgerError):
    code = "UPSTREAM_001"


class UnknownError(LedgerError):
    code = "INTERNAL_001"


class OperationPending(LedgerError):
    """같은 작업이 아직 처리 중일 때 재요청"""

    code = "OPERATION_PENDING"


ERROR_CLASSES: Dict[str, Type[LedgerError]] = {
    cls.code: cls
    for cls in (
        ValidationFailed,
        Unauthenticated,
        Forbidden,
        NotFound,
        Conflict,
        AlreadyDone,
        AlreadyCheckedIn,
        AlreadySpun,
        AlreadyReviewed,
        AlreadyDecided,
        AlreadyNotified,
        DuplicateLine,
        SelfPurchase,
        AlreadyOwned,
        EventFull,
        InvalidState,
        InsufficientBalance,
        UpstreamFailure,
        UnknownError,
    )
}
ERROR_CLASSES["DELETE_DISABLED"] = Forbidden

STATUS_FALLBACK: Dict[int, Type[LedgerError]] = {
    400: ValidationFailed,
    401: Unauthenticated,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    422: ValidationFailed,
    502: UpstreamFailure,
}


def from_response(response: httpx.Response) -> LedgerError:
    """실패 응답을 LedgerError로 변환"""
    try:
        body = response.json()
    except ValueError:
        body = {}

    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        error = {}

    code = error.get("code")
    cls = ERROR_CLASSES.get(code) or STATUS_FALLBACK.get(response.status_code, UnknownError)
    message = error.get("message") if code in ERROR_CLASSES else None
    return cls(message=message, details=error.get("details"), status_code=response.status_code)

from fastapi import HTTPException, status
from typing import Optional, Dict, Any

from marketapi.config import settings


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "인증이 필요합니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )

class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "권한이 없습니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )

class DeleteDisabledError(BaseAPIException):
    """자료 삭제는 구매자의 재다운로드 권리 보호를 위해 비활성화됨"""
    def __init__(self, message: str = "자료 삭제 기능은 비활성화되어 있습니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="DELETE_DISABLED",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

class BusinessLogicError(BaseAPIException):
    """Business logic errors"""
    def __init__(self, error_code: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            message=message,
            details=details
        )

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "데이터를 찾을 수 없습니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )

class ConflictError(BaseAPIException):
    """Resource conflict errors"""
    error_code_default = "CONFLICT_001"
    message_default = "이미 존재하는 데이터입니다."

    def __init__(self, message: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code=self.error_code_default,
            message=message or self.message_default,
            details=details
        )

# 멱등성/중복 위반 - 모두 409
class AlreadyParticipatedError(ConflictError):
    error_code_default = "ALREADY_DONE"
    message_default = "이미 참여하셨습니다."

class AlreadyCheckedInError(ConflictError):
    error_code_default = "ALREADY_CHECKED_IN"
    message_default = "이미 오늘 출석하셨습니다."

class AlreadySpunError(ConflictError):
    error_code_default = "ALREADY_SPUN"
    message_default = "오늘은 이미 룰렛을 돌리셨습니다."

class AlreadyReviewedError(ConflictError):
    error_code_default = "ALREADY_REVIEWED"
    message_default = "이미 후기를 작성했습니다."

class AlreadyDecidedError(ConflictError):
    error_code_default = "ALREADY_DECIDED"
    message_default = "이미 심사가 완료된 참여입니다."

class AlreadyNotifiedError(ConflictError):
    error_code_default = "ALREADY_NOTIFIED"
    message_default = "이미 알림을 발송했습니다."

class DuplicateLineError(ConflictError):
    error_code_default = "DUPLICATE_LINE"
    message_default = "이미 장바구니에 담긴 자료입니다."

class SelfPurchaseError(ConflictError):
    error_code_default = "SELF_PURCHASE"
    message_default = "본인의 자료는 구매할 수 없습니다."

class AlreadyOwnedError(ConflictError):
    error_code_default = "ALREADY_OWNED"
    message_default = "이미 구매한 자료입니다."

class EventFullError(ConflictError):
    error_code_default = "EVENT_FULL"
    message_default = "이미 마감되었습니다."

class InvalidStateError(ConflictError):
    error_code_default = "INVALID_STATE"
    message_default = "현재 상태에서는 처리할 수 없습니다."

class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "알 수 없는 오류가 발생했습니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )

class UpstreamError(BaseAPIException):
    """스토리지/AI 등 외부 서비스 오류"""
    def __init__(self, message: str = "외부 서비스 오류가 발생했습니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="UPSTREAM_001",
            message=message,
            details=details
        )

class InsufficientBalanceError(BaseAPIException):
    """Insufficient balance errors"""
    def __init__(self, message: str = "포인트가 부족합니다.", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details
        )


# 데이터베이스 오류 코드 → 사용자에게 보여줄 안전한 메시지
SAFE_DB_MESSAGES = {
    "23505": "이미 존재하는 데이터입니다.",
    "23503": "참조하는 데이터가 존재하지 않습니다.",
    "42501": "권한이 없습니다.",
    "PGRST116": "데이터를 찾을 수 없습니다.",
}


def sanitize_db_error(exc: Exception) -> str:
    """내부 DB 오류를 사용자용 메시지로 변환 (내부 정보 노출 방지)"""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(exc, "code", None)
    if code and code in SAFE_DB_MESSAGES:
        return SAFE_DB_MESSAGES[code]

    message = str(orig or exc)
    if settings.ENVIRONMENT == "production" and "violates" in message:
        return "요청을 처리할 수 없습니다."
    return message or "알 수 없는 오류가 발생했습니다."

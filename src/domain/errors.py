"""
Error definitions for the blog service.

규칙:
- 조용한 실패 금지 → PolicyRejectError로 명시적 실패
- 사용자에게 보이는 메시지는 한국어 (message)
- HTTP 상태는 코드에서 결정 (http_status_for)
"""

from typing import Any


class PolicyRejectError(Exception):
    """
    서비스 정책 위반 시 발생하는 에러.

    즉시 중단이 필요한 경우에만 사용:
    - 결제 요청 파라미터 검증 실패
    - 중복 결제 승인 요청
    - 요청 빈도 제한 초과
    - 플랜 사용량 한도 초과

    Usage:
        raise PolicyRejectError("INVALID_AMOUNT", message="유효하지 않은 결제 금액입니다", amount=0)
    """

    def __init__(self, code: str, message: str | None = None, **context: Any) -> None:
        self.code = code
        self.message = message or DEFAULT_MESSAGES.get(code, code)
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {self.message}" + (f" ({ctx_str})" if ctx_str else "")

    @property
    def status_code(self) -> int:
        return http_status_for(self.code)

    def to_dict(self) -> dict[str, Any]:
        """API 응답/로그 직렬화용."""
        return {
            "error": self.message,
            "code": self.code,
            **self.context,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Request ===
    MISSING_PARAMS = "MISSING_PARAMS"
    RATE_LIMITED = "RATE_LIMITED"
    UNAUTHORIZED = "UNAUTHORIZED"

    # === Payment ===
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_ORDER_ID = "INVALID_ORDER_ID"
    INVALID_PAYMENT_KEY = "INVALID_PAYMENT_KEY"
    INVALID_REASON = "INVALID_REASON"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    SERVER_CONFIG_ERROR = "SERVER_CONFIG_ERROR"
    TOSS_API_ERROR = "TOSS_API_ERROR"
    TOSS_CANCEL_ERROR = "TOSS_CANCEL_ERROR"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"

    # === Usage ===
    USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED"
    KEYWORD_LIMIT_EXCEEDED = "KEYWORD_LIMIT_EXCEEDED"
    DB_NOT_INITIALIZED = "DB_NOT_INITIALIZED"
    DATABASE_ERROR = "DATABASE_ERROR"

    # === Posts ===
    POST_NOT_FOUND = "POST_NOT_FOUND"
    INVALID_POST_TYPE = "INVALID_POST_TYPE"

    # === Teams ===
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TEAM_MEMBER_EXISTS = "TEAM_MEMBER_EXISTS"
    TEAM_MEMBER_NOT_FOUND = "TEAM_MEMBER_NOT_FOUND"
    INVALID_TEAM_MEMBER = "INVALID_TEAM_MEMBER"
    TEAM_KEY_UNAVAILABLE = "TEAM_KEY_UNAVAILABLE"

    # === Settings ===
    PRESET_LIMIT_EXCEEDED = "PRESET_LIMIT_EXCEEDED"
    PRESET_NOT_FOUND = "PRESET_NOT_FOUND"
    INVALID_API_PROVIDER = "INVALID_API_PROVIDER"

    # === Internal ===
    INTERNAL_ERROR = "INTERNAL_ERROR"


DEFAULT_MESSAGES: dict[str, str] = {
    ErrorCodes.MISSING_PARAMS: "필수 파라미터가 누락되었습니다",
    ErrorCodes.RATE_LIMITED: "요청이 너무 많습니다. 잠시 후 다시 시도해주세요.",
    ErrorCodes.UNAUTHORIZED: "인증이 필요합니다. 로그인해주세요.",
    ErrorCodes.INVALID_AMOUNT: "유효하지 않은 결제 금액입니다",
    ErrorCodes.INVALID_ORDER_ID: "유효하지 않은 주문 ID입니다",
    ErrorCodes.INVALID_PAYMENT_KEY: "유효하지 않은 결제 키입니다",
    ErrorCodes.INVALID_REASON: "취소 사유를 2자 이상 입력해주세요",
    ErrorCodes.DUPLICATE_REQUEST: "이미 처리 중인 결제 요청입니다",
    ErrorCodes.AMOUNT_MISMATCH: "결제 금액이 일치하지 않습니다",
    ErrorCodes.SERVER_CONFIG_ERROR: "결제 서버 설정 오류입니다",
    ErrorCodes.TOSS_API_ERROR: "결제 승인에 실패했습니다",
    ErrorCodes.TOSS_CANCEL_ERROR: "결제 취소에 실패했습니다",
    ErrorCodes.PAYMENT_NOT_FOUND: "결제 정보를 찾을 수 없습니다",
    ErrorCodes.USAGE_LIMIT_EXCEEDED: "사용량 한도를 초과했습니다",
    ErrorCodes.KEYWORD_LIMIT_EXCEEDED: "오늘의 키워드 분석 한도를 모두 사용했습니다",
    ErrorCodes.DB_NOT_INITIALIZED: "DB 미초기화",
    ErrorCodes.DATABASE_ERROR: "데이터 처리 중 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
    ErrorCodes.POST_NOT_FOUND: "글을 찾을 수 없습니다",
    ErrorCodes.INVALID_POST_TYPE: "지원하지 않는 글 유형입니다",
    ErrorCodes.USER_NOT_FOUND: "해당 이메일로 가입한 사용자가 없습니다",
    ErrorCodes.TEAM_MEMBER_EXISTS: "이미 팀에 추가된 멤버입니다",
    ErrorCodes.TEAM_MEMBER_NOT_FOUND: "팀 멤버가 아닙니다",
    ErrorCodes.INVALID_TEAM_MEMBER: "자기 자신은 팀 멤버로 추가할 수 없습니다",
    ErrorCodes.TEAM_KEY_UNAVAILABLE: "사용할 수 있는 팀 API 키가 없습니다",
    ErrorCodes.PRESET_LIMIT_EXCEEDED: "프리셋 저장 한도를 초과했습니다",
    ErrorCodes.PRESET_NOT_FOUND: "프리셋을 찾을 수 없습니다",
    ErrorCodes.INVALID_API_PROVIDER: "지원하지 않는 AI 제공자입니다",
    ErrorCodes.INTERNAL_ERROR: "처리 중 오류가 발생했습니다",
}

_HTTP_STATUS: dict[str, int] = {
    ErrorCodes.RATE_LIMITED: 429,
    ErrorCodes.USAGE_LIMIT_EXCEEDED: 429,
    ErrorCodes.KEYWORD_LIMIT_EXCEEDED: 429,
    ErrorCodes.UNAUTHORIZED: 401,
    ErrorCodes.DUPLICATE_REQUEST: 409,
    ErrorCodes.PAYMENT_NOT_FOUND: 404,
    ErrorCodes.POST_NOT_FOUND: 404,
    ErrorCodes.USER_NOT_FOUND: 404,
    ErrorCodes.TEAM_MEMBER_NOT_FOUND: 404,
    ErrorCodes.TEAM_MEMBER_EXISTS: 409,
    ErrorCodes.TEAM_KEY_UNAVAILABLE: 403,
    ErrorCodes.PRESET_LIMIT_EXCEEDED: 429,
    ErrorCodes.PRESET_NOT_FOUND: 404,
    ErrorCodes.SERVER_CONFIG_ERROR: 500,
    ErrorCodes.DB_NOT_INITIALIZED: 500,
    ErrorCodes.DATABASE_ERROR: 500,
    ErrorCodes.INTERNAL_ERROR: 500,
}


def http_status_for(code: str) -> int:
    """에러 코드 → HTTP 상태. 매핑 없으면 400."""
    return _HTTP_STATUS.get(code, 400)

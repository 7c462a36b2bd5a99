"""
test_errors.py - PolicyRejectError / HTTP 상태 매핑 테스트
"""

import pytest

from src.domain.errors import ErrorCodes, PolicyRejectError, http_status_for


class TestPolicyRejectError:
    """정책 거절 에러."""

    def test_default_message(self):
        error = PolicyRejectError(ErrorCodes.UNAUTHORIZED)

        assert error.message == "인증이 필요합니다. 로그인해주세요."

    def test_custom_message(self):
        error = PolicyRejectError(ErrorCodes.USAGE_LIMIT_EXCEEDED, message="월간 블로그 생성 한도(5회)를 초과했습니다")

        assert error.message == "월간 블로그 생성 한도(5회)를 초과했습니다"

    def test_to_dict_includes_context(self):
        error = PolicyRejectError(ErrorCodes.INVALID_AMOUNT, amount=0)

        assert error.to_dict() == {
            "error": "유효하지 않은 결제 금액입니다",
            "code": "INVALID_AMOUNT",
            "amount": 0,
        }

    def test_str_contains_code_and_context(self):
        error = PolicyRejectError(ErrorCodes.INVALID_AMOUNT, amount=-1)

        assert "[INVALID_AMOUNT]" in str(error)
        assert "amount=-1" in str(error)

    def test_unknown_code_uses_code_as_message(self):
        assert PolicyRejectError("SOMETHING_ELSE").message == "SOMETHING_ELSE"


class TestHttpStatus:
    """에러 코드 → HTTP 상태."""

    @pytest.mark.parametrize(
        "code, status",
        [
            (ErrorCodes.RATE_LIMITED, 429),
            (ErrorCodes.USAGE_LIMIT_EXCEEDED, 429),
            (ErrorCodes.KEYWORD_LIMIT_EXCEEDED, 429),
            (ErrorCodes.UNAUTHORIZED, 401),
            (ErrorCodes.DUPLICATE_REQUEST, 409),
            (ErrorCodes.POST_NOT_FOUND, 404),
            (ErrorCodes.SERVER_CONFIG_ERROR, 500),
            (ErrorCodes.DATABASE_ERROR, 500),
            (ErrorCodes.PRESET_LIMIT_EXCEEDED, 429),
            (ErrorCodes.TEAM_MEMBER_EXISTS, 409),
            (ErrorCodes.USER_NOT_FOUND, 404),
            (ErrorCodes.TEAM_KEY_UNAVAILABLE, 403),
            (ErrorCodes.INVALID_API_PROVIDER, 400),
            (ErrorCodes.INVALID_AMOUNT, 400),
            (ErrorCodes.AMOUNT_MISMATCH, 400),
        ],
    )
    def test_mapping(self, code, status):
        assert http_status_for(code) == status

    def test_status_code_property(self):
        assert PolicyRejectError(ErrorCodes.DUPLICATE_REQUEST).status_code == 409

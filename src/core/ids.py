"""
ID 생성: order_id, payment_id, post_id, preset_id

규칙:
- order_id는 토스 결제창에 그대로 전달 → ORDER_[A-Z0-9_]+ 형식 유지
- 생성된 ID 수정 금지
"""

import secrets
import string
import time
import uuid

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def generate_order_id(now_ms: int | None = None) -> str:
    """
    주문 ID 생성.

    포맷: ORDER_{밀리초 base36}_{랜덤 6자} (대문자)

    Args:
        now_ms: 기준 시각 (밀리초, 테스트용)

    Returns:
        order_id 문자열
    """
    return _generate_prefixed_id("ORDER", now_ms)


def generate_payment_id(now_ms: int | None = None) -> str:
    """결제 ID 생성. 포맷: PAY_{밀리초 base36}_{랜덤 6자}"""
    return _generate_prefixed_id("PAY", now_ms)


def generate_post_id() -> str:
    """저장 글 ID 생성 (uuid4 hex 앞 20자)."""
    return uuid.uuid4().hex[:20]


def generate_preset_id() -> str:
    """프리셋 ID 생성 (uuid4 문자열)."""
    return str(uuid.uuid4())


def _generate_prefixed_id(prefix: str, now_ms: int | None) -> str:
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    random_part = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(6))
    return f"{prefix}_{_to_base36(timestamp)}_{random_part}".upper()


def _to_base36(value: int) -> str:
    """
    정수 → base36 문자열.

    - 0 → "0"
    - 음수 미지원 (타임스탬프 전용)
    """
    if value < 0:
        raise ValueError(f"negative value not supported: {value}")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))

"""
Core layer: 운영 안전 핵심 모듈.

이 모듈만 건드리면 운영사고 → 가장 보수적으로 관리

역할:
- 결제 가드 (IP 빈도 제한, 멱등성)
- 주문/결제/글 ID 생성
- KST 기준 날짜 계산
- Firestore 접근
"""

from .clock import add_months, now_utc, start_of_day, to_datetime, today_string
from .guards import IdempotencyGuard, RateLimiter
from .ids import generate_order_id, generate_payment_id, generate_post_id
from .store import collection, document, get_firebase_app, get_firestore_client

__all__ = [
    # guards
    "RateLimiter",
    "IdempotencyGuard",
    # ids
    "generate_order_id",
    "generate_payment_id",
    "generate_post_id",
    # clock
    "now_utc",
    "start_of_day",
    "today_string",
    "add_months",
    "to_datetime",
    # store
    "get_firebase_app",
    "get_firestore_client",
    "document",
    "collection",
]

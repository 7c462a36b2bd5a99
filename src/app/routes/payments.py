"""
Payment Routes: 토스 결제 승인/취소 + 결제 레코드.

- POST /api/payment/confirm → 결제 승인 (IP당 분당 10회)
- POST /api/payment/cancel → 결제 취소 (IP당 분당 5회)
- POST /api/payment/create → PENDING 결제 생성 (주문 ID 발급)
- POST /api/payment/history → 내 결제 내역
- POST /api/payment/subscription/cancel → 자동 갱신 해지

검증 실패는 PolicyRejectError → {"error", "code"} 응답.
토스 에러는 토스 status/code 그대로 전달.
"""

import logging
import math
import re
from typing import Any

import httpx
from fastapi import APIRouter, HTTPException, Request
from google.api_core.exceptions import GoogleAPICallError

from src.app.auth import authenticate_request
from src.app.routes.common import client_ip, get_config, get_db, policy_error, read_json
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.payments import PaymentService, SubscriptionService
from src.app.services.toss import DEFAULT_BASE_URL, TossAPIError, TossPaymentsClient
from src.domain.constants import (
    CANCEL_REASON_MAX_LENGTH,
    CANCEL_REASON_MIN_LENGTH,
    MAX_PAYMENT_AMOUNT,
    ORDER_ID_PATTERN,
    PAYMENT_KEY_MAX_LENGTH,
    PAYMENT_KEY_MIN_LENGTH,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import PaymentStatus, SubscriptionPlan

logger = logging.getLogger(__name__)

api_router = APIRouter()


# =============================================================================
# Validation
# =============================================================================


def parse_amount(value: Any, max_amount: int = MAX_PAYMENT_AMOUNT) -> int | float:
    """
    결제/취소 금액 검증 (0 < amount ≤ max_amount).

    Raises:
        PolicyRejectError: INVALID_AMOUNT
    """
    if isinstance(value, bool):
        raise PolicyRejectError(ErrorCodes.INVALID_AMOUNT, amount=value)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise PolicyRejectError(ErrorCodes.INVALID_AMOUNT, amount=value) from None
    if math.isnan(amount) or amount <= 0 or amount > max_amount:
        raise PolicyRejectError(ErrorCodes.INVALID_AMOUNT, amount=value)
    return int(amount) if amount.is_integer() else amount


def validate_order_id(order_id: Any) -> str:
    if not isinstance(order_id, str) or not re.match(ORDER_ID_PATTERN, order_id):
        raise PolicyRejectError(ErrorCodes.INVALID_ORDER_ID)
    return order_id


def validate_payment_key(payment_key: Any) -> str:
    if (
        not isinstance(payment_key, str)
        or not PAYMENT_KEY_MIN_LENGTH <= len(payment_key) <= PAYMENT_KEY_MAX_LENGTH
    ):
        raise PolicyRejectError(ErrorCodes.INVALID_PAYMENT_KEY)
    return payment_key


def sanitize_reason(reason: Any) -> str:
    """<> 제거 후 200자 자르기. 2자 미만이면 INVALID_REASON."""
    sanitized = re.sub(r"[<>]", "", str(reason))[:CANCEL_REASON_MAX_LENGTH]
    if len(sanitized) < CANCEL_REASON_MIN_LENGTH:
        raise PolicyRejectError(ErrorCodes.INVALID_REASON)
    return sanitized


def _payments_config(request: Request) -> dict[str, Any]:
    return get_config(request).get("payments", {})


def _check_rate_limit(request: Request, limiter_name: str) -> None:
    limiter = getattr(request.app.state, limiter_name)
    if not limiter.check(client_ip(request)):
        raise PolicyRejectError(ErrorCodes.RATE_LIMITED)


def _toss_http_error(e: TossAPIError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


# =============================================================================
# API Routes
# =============================================================================


@api_router.post("/confirm")
async def confirm_payment(request: Request) -> dict[str, Any]:
    """
    결제 승인.

    1. IP 요청 빈도 → 2. 파라미터 → 3. 금액 → 4. 주문 ID 형식
    → 5. 중복 요청(orderId:paymentKey) → 6. 토스 승인 → 7. 금액 일치 확인

    paymentId가 있으면 결제 레코드 승인 처리 + 플랜 변경 (기록 실패는 응답에 recorded=False).
    """
    try:
        _check_rate_limit(request, "confirm_limiter")
        body = await read_json(request)

        payment_key = body.get("paymentKey")
        order_id = body.get("orderId")
        if not payment_key or not order_id or body.get("amount") is None:
            raise PolicyRejectError(ErrorCodes.MISSING_PARAMS)

        config = _payments_config(request)
        amount = parse_amount(body["amount"], config.get("max_amount", MAX_PAYMENT_AMOUNT))
        validate_order_id(order_id)

        guard = request.app.state.idempotency_guard
        idempotency_key = f"{order_id}:{payment_key}"
        if not guard.acquire(idempotency_key):
            raise PolicyRejectError(ErrorCodes.DUPLICATE_REQUEST)

        try:
            async with httpx.AsyncClient(timeout=30.0) as http_client:
                toss = TossPaymentsClient(
                    base_url=config.get("toss_base_url", DEFAULT_BASE_URL),
                    http_client=http_client,
                )
                toss_data = await toss.confirm(payment_key, order_id, amount, idempotency_key)
        finally:
            guard.release(idempotency_key)

        if toss_data.get("totalAmount") != amount:
            logger.error(
                f"Amount mismatch: expected={amount}, actual={toss_data.get('totalAmount')}"
            )
            raise PolicyRejectError(ErrorCodes.AMOUNT_MISMATCH)

        response: dict[str, Any] = {
            "success": True,
            "payment": {
                "paymentKey": toss_data.get("paymentKey"),
                "orderId": toss_data.get("orderId"),
                "orderName": toss_data.get("orderName"),
                "status": toss_data.get("status"),
                "method": toss_data.get("method"),
                "totalAmount": toss_data.get("totalAmount"),
                "approvedAt": toss_data.get("approvedAt"),
                "receipt": (toss_data.get("receipt") or {}).get("url"),
            },
        }
        if body.get("paymentId"):
            response["recorded"] = _record_approval(request, body["paymentId"], payment_key, toss_data)
        return response

    except PolicyRejectError as e:
        raise policy_error(e) from e
    except TossAPIError as e:
        logger.error(f"Toss API error: {e}")
        raise _toss_http_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Payment confirm error: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "결제 처리 중 오류가 발생했습니다", "code": ErrorCodes.INTERNAL_ERROR},
        ) from e


def _record_approval(
    request: Request,
    payment_id: str,
    payment_key: str,
    toss_data: dict[str, Any],
) -> bool:
    """승인된 결제 레코드 갱신 + 플랜 변경. 토스 승인은 이미 끝났으므로 실패는 로그만."""
    db = get_db(request)
    payments = PaymentService(db)
    try:
        payment = payments.get_payment(payment_id)
        if payment is None:
            logger.error(f"Approved payment has no record: {payment_id}")
            return False
        payments.approve_payment(payment_id, payment_key, toss_data)
        SubscriptionService(db).upgrade_plan(payment.user_id, payment.plan, payment_id)
    except (GoogleAPICallError, PolicyRejectError) as e:
        logger.error(f"Recording payment approval failed: {payment_id} ({e})", exc_info=True)
        return False

    ActivityService(db).log_activity(
        payment.user_id,
        ActivityType.PAYMENT,
        f"{payment.plan_name} 결제 ({payment.amount:,}원)",
        {"paymentId": payment_id, "plan": payment.plan.value},
    )
    return True


@api_router.post("/cancel")
async def cancel_payment(request: Request) -> dict[str, Any]:
    """
    결제 취소 (cancelAmount 지정 시 부분 취소).

    paymentId가 있으면 결제 레코드도 CANCELED로 갱신.
    """
    try:
        _check_rate_limit(request, "cancel_limiter")
        body = await read_json(request)

        payment_key = body.get("paymentKey")
        cancel_reason = body.get("cancelReason")
        if not payment_key or not cancel_reason:
            raise PolicyRejectError(ErrorCodes.MISSING_PARAMS)

        validate_payment_key(payment_key)
        reason = sanitize_reason(cancel_reason)

        config = _payments_config(request)
        cancel_amount = None
        if body.get("cancelAmount") is not None:
            cancel_amount = parse_amount(
                body["cancelAmount"], config.get("max_amount", MAX_PAYMENT_AMOUNT)
            )

        async with httpx.AsyncClient(timeout=30.0) as http_client:
            toss = TossPaymentsClient(
                base_url=config.get("toss_base_url", DEFAULT_BASE_URL),
                http_client=http_client,
            )
            toss_data = await toss.cancel(payment_key, reason, cancel_amount)

        first_cancel = (toss_data.get("cancels") or [{}])[0]
        if body.get("paymentId"):
            PaymentService(get_db(request)).cancel_payment(body["paymentId"], reason, cancel_amount)

        return {
            "success": True,
            "cancellation": {
                "paymentKey": toss_data.get("paymentKey"),
                "orderId": toss_data.get("orderId"),
                "status": toss_data.get("status"),
                "canceledAt": first_cancel.get("canceledAt"),
                "cancelAmount": first_cancel.get("cancelAmount"),
                "cancelReason": reason,
            },
        }

    except PolicyRejectError as e:
        raise policy_error(e) from e
    except TossAPIError as e:
        logger.error(f"Toss cancel API error: {e}")
        raise _toss_http_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Payment cancel error: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "결제 취소 중 오류가 발생했습니다", "code": ErrorCodes.INTERNAL_ERROR},
        ) from e


@api_router.post("/create")
async def create_payment(request: Request) -> dict[str, Any]:
    """결제창 열기 전 PENDING 레코드 생성. 무료/엔터프라이즈(문의) 플랜은 거절."""
    body = await read_json(request)
    user_id = await authenticate_request(request, body)

    try:
        plan = SubscriptionPlan(body.get("plan"))
    except ValueError:
        raise policy_error(PolicyRejectError(ErrorCodes.MISSING_PARAMS, message="지원하지 않는 플랜입니다")) from None

    if plan in (SubscriptionPlan.FREE, SubscriptionPlan.ENTERPRISE):
        raise policy_error(PolicyRejectError(ErrorCodes.INVALID_AMOUNT, plan=plan.value))

    try:
        payment = PaymentService(get_db(request)).create_payment(user_id, plan)
    except PolicyRejectError as e:
        raise policy_error(e) from e

    return {
        "paymentId": payment.id,
        "orderId": payment.order_id,
        "amount": payment.amount,
        "orderName": f"{payment.plan_name} 플랜 (1개월)",
        "status": PaymentStatus.PENDING.value,
    }


@api_router.post("/history")
async def payment_history(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    payments = PaymentService(get_db(request)).get_user_payments(user_id)
    return {"payments": [payment.to_dict() for payment in payments]}


@api_router.post("/subscription/cancel")
async def cancel_subscription(request: Request) -> dict[str, Any]:
    """자동 갱신 해지 (현재 기간 끝까지 플랜 유지)."""
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    try:
        SubscriptionService(get_db(request)).cancel_subscription(user_id)
    except PolicyRejectError as e:
        raise policy_error(e) from e

    ActivityService(get_db(request)).log_activity(user_id, ActivityType.PLAN_CHANGE, "자동 갱신 해지")
    return {"success": True}

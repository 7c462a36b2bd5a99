"""
결제/구독 레코드 서비스.

Firestore:
- payments/{paymentId}
- users/{uid}/subscription/current

규칙:
- DB 미초기화 시 쓰기는 PolicyRejectError, 조회는 None/빈 리스트
- 상태 전이: PENDING → DONE (approve) / CANCELED (cancel)
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.clock import add_months, now_utc
from src.core.ids import generate_order_id, generate_payment_id
from src.core.store import collection, document
from src.domain.constants import PAYMENTS_COLLECTION, PLANS, SUBSCRIPTION_DOC
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    Payment,
    PaymentStatus,
    SubscriptionPlan,
    UsageKind,
    UserSubscription,
)

from .usage import default_subscription, is_unlimited

logger = logging.getLogger(__name__)

__all__ = [
    "PaymentService",
    "SubscriptionService",
    "generate_order_id",
    "generate_payment_id",
]


class PaymentService:
    """결제 레코드 CRUD."""

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    def create_payment(
        self,
        user_id: str,
        plan: SubscriptionPlan,
        amount: int | None = None,
        order_id: str | None = None,
        payment_id: str | None = None,
    ) -> Payment:
        """
        PENDING 결제 레코드 생성.

        amount 생략 시 플랜 가격.
        """
        plan_info = PLANS[plan]
        payment = Payment(
            id=payment_id or generate_payment_id(),
            order_id=order_id or generate_order_id(),
            user_id=user_id,
            amount=plan_info.price if amount is None else amount,
            plan=plan,
            plan_name=plan_info.name,
            status=PaymentStatus.PENDING,
            created_at=self._clock(),
        )
        self._payment_ref(payment.id).set(payment.to_dict())
        logger.info(f"Payment created: {payment.id} (order={payment.order_id}, plan={plan.value})")
        return payment

    def get_payment(self, payment_id: str) -> Payment | None:
        if self.db is None:
            return None
        snapshot = self._payment_ref(payment_id).get()
        if not snapshot.exists:
            return None
        return Payment.from_dict({"id": snapshot.id, **(snapshot.to_dict() or {})})

    def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        **fields: Any,
    ) -> None:
        """상태 + 추가 필드(camelCase) 갱신."""
        self._payment_ref(payment_id).update(
            {"status": status.value, **fields, "updatedAt": self._clock()}
        )

    def approve_payment(
        self,
        payment_id: str,
        payment_key: str,
        toss_response: dict[str, Any],
    ) -> None:
        """승인 완료: DONE + paymentKey/approvedAt/method."""
        self.update_payment_status(
            payment_id,
            PaymentStatus.DONE,
            paymentKey=payment_key,
            approvedAt=self._clock(),
            method=toss_response.get("method"),
            tossResponse=toss_response,
        )

    def cancel_payment(
        self,
        payment_id: str,
        cancel_reason: str,
        cancel_amount: int | None = None,
    ) -> None:
        fields: dict[str, Any] = {"cancelReason": cancel_reason, "canceledAt": self._clock()}
        if cancel_amount is not None:
            fields["cancelAmount"] = cancel_amount
        self.update_payment_status(payment_id, PaymentStatus.CANCELED, **fields)

    def get_user_payments(self, user_id: str) -> list[Payment]:
        """사용자 결제 내역 (최신순)."""
        if self.db is None:
            return []

        query = (
            collection(self.db, PAYMENTS_COLLECTION)
            .where(filter=FieldFilter("userId", "==", user_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        return [
            Payment.from_dict({"id": snap.id, **(snap.to_dict() or {})})
            for snap in query.stream()
        ]

    def _payment_ref(self, payment_id: str) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return document(self.db, f"{PAYMENTS_COLLECTION}/{payment_id}")


class SubscriptionService:
    """구독 문서 관리 (플랜 변경, 월간 리셋, 해지)."""

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    def update_user_subscription(self, user_id: str, data: dict[str, Any]) -> None:
        """
        구독 문서 부분 갱신. 문서가 없으면 기본 FREE 구독 위에 data를 덮어 생성.

        Args:
            data: camelCase 필드
        """
        ref = self._subscription_ref(user_id)
        now = self._clock()

        if ref.get().exists:
            ref.update({**data, "updatedAt": now})
            return

        base = default_subscription(user_id, now).to_dict()
        ref.set({**base, **data, "updatedAt": now})
        logger.info(f"Subscription created: user={user_id}")

    def get_user_subscription(self, user_id: str) -> UserSubscription | None:
        """구독 조회. 없으면 기본 FREE 구독 생성 후 반환."""
        if self.db is None:
            return None

        ref = self._subscription_ref(user_id)
        snapshot = ref.get()
        if snapshot.exists:
            return UserSubscription.from_dict(user_id, snapshot.to_dict() or {})

        self.update_user_subscription(user_id, {"currentPlan": SubscriptionPlan.FREE.value})
        return UserSubscription.from_dict(user_id, ref.get().to_dict() or {})

    def upgrade_plan(self, user_id: str, new_plan: SubscriptionPlan, payment_id: str) -> None:
        """
        플랜 변경: 오늘부터 1개월, 자동 갱신, 월간 카운터 리셋.
        """
        now = self._clock()
        end = add_months(now, 1)
        self.update_user_subscription(
            user_id,
            {
                "currentPlan": new_plan.value,
                "planStartDate": now,
                "planEndDate": end,
                "lastPaymentId": payment_id,
                "nextPaymentDate": end,
                "usageResetDate": end,
                "blogCount": 0,
                "imageAnalysisCount": 0,
                "imageGenerationCount": 0,
                "tokenUsage": 0,
                "isActive": True,
                "autoRenew": True,
            },
        )
        logger.info(f"Plan upgraded: user={user_id}, plan={new_plan.value}, payment={payment_id}")

    def increment_usage(self, user_id: str, kind: UsageKind | str) -> tuple[bool, int]:
        """
        사용량 1 증가.

        Returns:
            (allowed, remaining). 무제한이면 remaining = -1
        """
        kind = UsageKind(kind)
        subscription = self.get_user_subscription(user_id)
        if subscription is None:
            return False, 0

        plan = PLANS[subscription.current_plan]
        if kind == UsageKind.BLOG:
            field_name, limit, current = "blogCount", plan.blog_limit, subscription.blog_count
        else:
            field_name, limit, current = (
                "imageAnalysisCount",
                plan.image_limit,
                subscription.image_analysis_count,
            )

        if is_unlimited(limit):
            self.update_user_subscription(user_id, {field_name: current + 1})
            return True, -1

        if current >= limit:
            return False, 0

        self.update_user_subscription(user_id, {field_name: current + 1})
        return True, limit - current - 1

    def reset_monthly_usage(self, user_id: str) -> None:
        self.update_user_subscription(
            user_id,
            {
                "blogCount": 0,
                "imageAnalysisCount": 0,
                "imageGenerationCount": 0,
                "tokenUsage": 0,
                "usageResetDate": add_months(self._clock(), 1),
            },
        )

    def cancel_subscription(self, user_id: str) -> None:
        """자동 갱신 해지 (기간 만료까지 플랜 유지)."""
        self.update_user_subscription(user_id, {"autoRenew": False})
        logger.info(f"Subscription auto-renew canceled: user={user_id}")

    def _subscription_ref(self, user_id: str) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return document(self.db, SUBSCRIPTION_DOC.format(uid=user_id))

"""
test_payments.py - 결제/구독 레코드 서비스 테스트

검증 포인트:
1. PENDING 결제 생성 (플랜 가격 기본값)
2. 승인/취소 상태 전이
3. 사용자 결제 내역 최신순
4. 플랜 업그레이드 시 월간 카운터 리셋 + 1개월 기간
5. 구독 증가/해지
"""

from datetime import UTC, datetime

import pytest

from src.app.services.payments import PaymentService, SubscriptionService
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import PaymentStatus, SubscriptionPlan, UsageKind

SUB_PATH = "users/u1/subscription/current"


class TestPaymentService:
    """payments/{id} 레코드."""

    def test_create_payment_defaults_to_plan_price(self, db, clock, fixed_now):
        service = PaymentService(db, clock=clock)

        payment = service.create_payment("u1", SubscriptionPlan.BASIC, payment_id="PAY_1")

        assert payment.amount == 9900
        assert payment.plan_name == "베이직"
        assert payment.order_id.startswith("ORDER_")
        stored = db.docs["payments/PAY_1"]
        assert stored["status"] == "PENDING"
        assert stored["createdAt"] == fixed_now
        assert "paymentKey" not in stored

    def test_create_payment_with_explicit_amount(self, db, clock):
        payment = PaymentService(db, clock=clock).create_payment(
            "u1", SubscriptionPlan.PRO, amount=1000, order_id="ORDER_X", payment_id="PAY_2"
        )

        assert payment.amount == 1000
        assert db.docs["payments/PAY_2"]["orderId"] == "ORDER_X"

    def test_approve_payment(self, db, clock, fixed_now):
        service = PaymentService(db, clock=clock)
        service.create_payment("u1", SubscriptionPlan.BASIC, payment_id="PAY_1")

        service.approve_payment("PAY_1", "pk_abcdefghij", {"method": "카드"})

        payment = service.get_payment("PAY_1")
        assert payment.status == PaymentStatus.DONE
        assert payment.payment_key == "pk_abcdefghij"
        assert payment.method == "카드"
        assert payment.approved_at == fixed_now

    def test_cancel_payment(self, db, clock):
        service = PaymentService(db, clock=clock)
        service.create_payment("u1", SubscriptionPlan.BASIC, payment_id="PAY_1")

        service.cancel_payment("PAY_1", "단순 변심", 5000)

        payment = service.get_payment("PAY_1")
        assert payment.status == PaymentStatus.CANCELED
        assert payment.cancel_reason == "단순 변심"
        assert payment.cancel_amount == 5000

    def test_get_payment_missing(self, db):
        assert PaymentService(db).get_payment("nope") is None

    def test_user_payments_newest_first(self, db):
        db.docs["payments/a"] = {"userId": "u1", "plan": "BASIC", "createdAt": datetime(2025, 1, 1, tzinfo=UTC)}
        db.docs["payments/b"] = {"userId": "u1", "plan": "PRO", "createdAt": datetime(2025, 2, 1, tzinfo=UTC)}
        db.docs["payments/c"] = {"userId": "u2", "plan": "PRO", "createdAt": datetime(2025, 3, 1, tzinfo=UTC)}

        payments = PaymentService(db).get_user_payments("u1")

        assert [p.id for p in payments] == ["b", "a"]

    def test_db_none(self):
        service = PaymentService(None)

        assert service.get_payment("x") is None
        assert service.get_user_payments("u1") == []
        with pytest.raises(PolicyRejectError) as exc_info:
            service.create_payment("u1", SubscriptionPlan.BASIC)
        assert exc_info.value.code == ErrorCodes.DB_NOT_INITIALIZED


class TestSubscriptionService:
    """users/{uid}/subscription/current."""

    def test_upgrade_plan_resets_counters(self, db, clock, fixed_now):
        db.docs[SUB_PATH] = {"currentPlan": "FREE", "blogCount": 5, "tokenUsage": 1234}

        SubscriptionService(db, clock=clock).upgrade_plan("u1", SubscriptionPlan.PRO, "PAY_1")

        doc = db.docs[SUB_PATH]
        assert doc["currentPlan"] == "PRO"
        assert doc["blogCount"] == 0
        assert doc["tokenUsage"] == 0
        assert doc["lastPaymentId"] == "PAY_1"
        assert doc["planEndDate"] == datetime(2025, 4, 15, 3, 0, tzinfo=UTC)
        assert doc["autoRenew"] is True

    def test_upgrade_creates_missing_subscription(self, db, clock):
        SubscriptionService(db, clock=clock).upgrade_plan("u1", SubscriptionPlan.BASIC, "PAY_1")

        doc = db.docs[SUB_PATH]
        assert doc["currentPlan"] == "BASIC"
        assert doc["userId"] == "u1"

    def test_get_user_subscription_creates_free(self, db, clock):
        subscription = SubscriptionService(db, clock=clock).get_user_subscription("u1")

        assert subscription.current_plan == SubscriptionPlan.FREE
        assert SUB_PATH in db.docs

    def test_increment_usage_remaining(self, db, clock):
        db.docs[SUB_PATH] = {"currentPlan": "FREE", "blogCount": 3}
        service = SubscriptionService(db, clock=clock)

        assert service.increment_usage("u1", UsageKind.BLOG) == (True, 1)
        assert service.increment_usage("u1", UsageKind.BLOG) == (True, 0)
        assert service.increment_usage("u1", UsageKind.BLOG) == (False, 0)

    def test_increment_usage_unlimited(self, db, clock):
        db.docs[SUB_PATH] = {"currentPlan": "PRO", "imageAnalysisCount": 50}

        result = SubscriptionService(db, clock=clock).increment_usage("u1", "imageAnalysis")

        assert result == (True, -1)
        assert db.docs[SUB_PATH]["imageAnalysisCount"] == 51

    def test_reset_monthly_usage(self, db, clock):
        db.docs[SUB_PATH] = {"currentPlan": "BASIC", "blogCount": 10, "imageGenerationCount": 4}

        SubscriptionService(db, clock=clock).reset_monthly_usage("u1")

        assert db.docs[SUB_PATH]["blogCount"] == 0
        assert db.docs[SUB_PATH]["imageGenerationCount"] == 0

    def test_cancel_subscription_keeps_plan(self, db, clock):
        db.docs[SUB_PATH] = {"currentPlan": "PRO", "autoRenew": True}

        SubscriptionService(db, clock=clock).cancel_subscription("u1")

        assert db.docs[SUB_PATH]["autoRenew"] is False
        assert db.docs[SUB_PATH]["currentPlan"] == "PRO"

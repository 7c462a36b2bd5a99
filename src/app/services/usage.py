"""
Usage Service: 플랜별 사용량 체크 + 증가 (서버 전용).

대상:
- blog / imageAnalysis: 월간 카운터
- 이미지 생성: 유료 모델만 월간 + 일일 카운터
- 토큰: 월간 + 일일 누적

규칙:
- 관리자(ADMIN_USER_ID)는 항상 허용, 쓰기 없음
- 한도 -1 = 무제한 (카운터는 계속 증가)
- 일일 카운터는 리셋 날짜가 없거나 오늘(KST 00:00) 이전이면 0으로 간주
- 거절은 예외가 아닌 UsageCheckResult(allowed=False, reason)
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from src.core.clock import add_months, now_utc, start_of_day, to_datetime
from src.core.store import document
from src.domain.constants import (
    ADMIN_USER_ID,
    FREE_IMAGE_MODELS,
    PLANS,
    SUBSCRIPTION_DOC,
    UNLIMITED,
)
from src.domain.schemas import (
    PlanInfo,
    SubscriptionPlan,
    UsageCheckResult,
    UsageKind,
    UserSubscription,
)

logger = logging.getLogger(__name__)

DB_NOT_READY = "DB 미초기화"
NO_SUBSCRIPTION = "구독 정보 없음"

_USAGE_FIELDS: dict[UsageKind, tuple[str, str]] = {
    UsageKind.BLOG: ("blogCount", "블로그 생성"),
    UsageKind.IMAGE_ANALYSIS: ("imageAnalysisCount", "이미지 분석"),
}


def default_subscription(user_id: str, now: datetime) -> UserSubscription:
    """신규 사용자 기본 FREE 구독 (1개월, 카운터 0)."""
    end = add_months(now, 1)
    return UserSubscription(
        user_id=user_id,
        current_plan=SubscriptionPlan.FREE,
        plan_start_date=now,
        plan_end_date=end,
        daily_image_generation_reset_date=now,
        daily_token_reset_date=now,
        usage_reset_date=end,
        is_active=True,
        auto_renew=False,
        created_at=now,
        updated_at=now,
    )


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def needs_daily_reset(reset_date: Any, today: datetime) -> bool:
    """리셋 날짜가 없거나 오늘 00:00 이전이면 True."""
    parsed = to_datetime(reset_date)
    return parsed is None or parsed < today


def estimate_tokens(prompt: str, max_output_tokens: int) -> int:
    """호출 전 토큰 추정: 한글 프롬프트 2자당 1토큰 + 최대 출력 토큰."""
    return (len(prompt) + 1) // 2 + max_output_tokens


class UsageService:
    """
    구독 문서 기반 사용량 관리.

    Usage:
        usage = UsageService(db)
        result = usage.check_and_increment_usage(uid, UsageKind.BLOG)
        if not result.allowed:
            raise PolicyRejectError("USAGE_LIMIT_EXCEEDED", message=result.reason)
    """

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        """
        Args:
            db: Firestore 클라이언트 (None이면 모든 체크 거절)
            clock: 현재 시각 함수 (테스트에서 교체)
        """
        self.db = db
        self._clock = clock

    # =========================================================================
    # Subscription
    # =========================================================================

    def get_subscription(self, user_id: str) -> UserSubscription | None:
        """
        구독 조회. 문서가 없으면 기본 FREE 구독을 만들어 저장 후 반환.

        Returns:
            UserSubscription 또는 None (DB 미초기화)
        """
        if self.db is None:
            return None

        ref = self._subscription_ref(user_id)
        snapshot = ref.get()

        if not snapshot.exists:
            subscription = default_subscription(user_id, self._clock())
            ref.set(subscription.to_dict())
            logger.info(f"Created default FREE subscription: user={user_id}")
            return subscription

        return UserSubscription.from_dict(user_id, snapshot.to_dict() or {})

    # =========================================================================
    # Blog / Image Analysis
    # =========================================================================

    def check_and_increment_usage(
        self,
        user_id: str,
        kind: UsageKind | str,
    ) -> UsageCheckResult:
        """
        블로그 생성 / 이미지 분석 월간 사용량 체크 후 1 증가.

        Raises:
            ValueError: 지원하지 않는 kind
        """
        kind = UsageKind(kind)
        if user_id == ADMIN_USER_ID:
            return UsageCheckResult(allowed=True)

        if self.db is None:
            return UsageCheckResult(allowed=False, reason=DB_NOT_READY)

        subscription = self.get_subscription(user_id)
        if subscription is None:
            return UsageCheckResult(allowed=False, reason=NO_SUBSCRIPTION)

        plan = PLANS[subscription.current_plan]
        field_name, label = _USAGE_FIELDS[kind]
        limit = plan.blog_limit if kind == UsageKind.BLOG else plan.image_limit
        current = (
            subscription.blog_count
            if kind == UsageKind.BLOG
            else subscription.image_analysis_count
        )

        if not is_unlimited(limit) and current >= limit:
            reason = f"월간 {label} 한도({limit}회)를 초과했습니다"
            logger.warning(f"Usage rejected: user={user_id}, kind={kind.value}, count={current}")
            return UsageCheckResult(allowed=False, reason=reason)

        self._update(user_id, {field_name: current + 1})
        return UsageCheckResult(allowed=True)

    # =========================================================================
    # Image Generation
    # =========================================================================

    def check_and_increment_image_usage(self, user_id: str, model: str) -> UsageCheckResult:
        """
        이미지 생성 사용량 체크.

        - 무료 모델(FREE_IMAGE_MODELS): 제한 없음, 쓰기 없음
        - 유료 모델: 플랜 미지원 → 월간 → 일일 순으로 체크 후 둘 다 증가
        """
        if user_id == ADMIN_USER_ID or model in FREE_IMAGE_MODELS:
            return UsageCheckResult(allowed=True)

        if self.db is None:
            return UsageCheckResult(allowed=False, reason=DB_NOT_READY)

        subscription = self.get_subscription(user_id)
        if subscription is None:
            return UsageCheckResult(allowed=False, reason=NO_SUBSCRIPTION)

        plan = PLANS[subscription.current_plan]
        today = start_of_day(self._clock())
        reset = needs_daily_reset(subscription.daily_image_generation_reset_date, today)
        daily_count = 0 if reset else subscription.daily_paid_image_generation_count
        monthly_count = subscription.image_generation_count

        reason = _image_rejection(plan, monthly_count, daily_count)
        if reason:
            logger.warning(f"Image usage rejected: user={user_id}, model={model}, reason={reason}")
            return UsageCheckResult(allowed=False, reason=reason)

        update: dict[str, Any] = {
            "imageGenerationCount": monthly_count + 1,
            "dailyPaidImageGenerationCount": daily_count + 1,
        }
        if reset:
            update["dailyImageGenerationResetDate"] = today
        self._update(user_id, update)
        return UsageCheckResult(allowed=True)

    # =========================================================================
    # Tokens
    # =========================================================================

    def check_and_increment_token_usage(self, user_id: str, tokens: int) -> UsageCheckResult:
        """
        토큰 사용량 체크 (일일 → 월간) 후 누적.

        누적 후 값이 한도를 넘으면 거절 (한도와 같으면 허용).
        """
        if user_id == ADMIN_USER_ID:
            return UsageCheckResult(allowed=True)

        if self.db is None:
            return UsageCheckResult(allowed=False, reason=DB_NOT_READY)

        subscription = self.get_subscription(user_id)
        if subscription is None:
            return UsageCheckResult(allowed=False, reason=NO_SUBSCRIPTION)

        plan = PLANS[subscription.current_plan]
        today = start_of_day(self._clock())
        reset = needs_daily_reset(subscription.daily_token_reset_date, today)
        daily_usage = 0 if reset else subscription.daily_token_usage
        monthly_usage = subscription.token_usage

        if not is_unlimited(plan.daily_token_limit) and daily_usage + tokens > plan.daily_token_limit:
            reason = f"일일 토큰 한도({plan.daily_token_limit:,})를 초과했습니다"
            logger.warning(f"Token usage rejected (daily): user={user_id}, used={daily_usage}")
            return UsageCheckResult(allowed=False, reason=reason)

        if not is_unlimited(plan.token_limit) and monthly_usage + tokens > plan.token_limit:
            reason = f"월간 토큰 한도({plan.token_limit:,})를 초과했습니다"
            logger.warning(f"Token usage rejected (monthly): user={user_id}, used={monthly_usage}")
            return UsageCheckResult(allowed=False, reason=reason)

        update: dict[str, Any] = {
            "tokenUsage": monthly_usage + tokens,
            "dailyTokenUsage": daily_usage + tokens,
        }
        if reset:
            update["dailyTokenResetDate"] = today
        self._update(user_id, update)
        return UsageCheckResult(allowed=True)

    # =========================================================================
    # Summary
    # =========================================================================

    def get_usage_summary(self, user_id: str) -> dict[str, Any] | None:
        """
        대시보드용 사용량 요약.

        일일 카운터는 리셋 시점이 지났으면 0으로 보고 (쓰기 없음).
        """
        subscription = self.get_subscription(user_id)
        if subscription is None:
            return None

        plan = PLANS[subscription.current_plan]
        today = start_of_day(self._clock())
        image_reset = needs_daily_reset(subscription.daily_image_generation_reset_date, today)
        token_reset = needs_daily_reset(subscription.daily_token_reset_date, today)

        return {
            "plan": plan.to_dict(),
            "isAdmin": user_id == ADMIN_USER_ID,
            "usage": {
                "blogCount": subscription.blog_count,
                "imageAnalysisCount": subscription.image_analysis_count,
                "imageGenerationCount": subscription.image_generation_count,
                "dailyPaidImageGenerationCount": (
                    0 if image_reset else subscription.daily_paid_image_generation_count
                ),
                "tokenUsage": subscription.token_usage,
                "dailyTokenUsage": 0 if token_reset else subscription.daily_token_usage,
            },
            "limits": {
                "blogLimit": plan.blog_limit,
                "imageLimit": plan.image_limit,
                "imageGenerationLimit": plan.image_generation_limit,
                "dailyPaidImageGenerationLimit": plan.daily_paid_image_generation_limit,
                "tokenLimit": plan.token_limit,
                "dailyTokenLimit": plan.daily_token_limit,
            },
            "planEndDate": subscription.plan_end_date,
            "usageResetDate": subscription.usage_reset_date,
        }

    # =========================================================================
    # Internal
    # =========================================================================

    def _subscription_ref(self, user_id: str) -> Any:
        return document(self.db, SUBSCRIPTION_DOC.format(uid=user_id))

    def _update(self, user_id: str, data: dict[str, Any]) -> None:
        self._subscription_ref(user_id).update({**data, "updatedAt": self._clock()})


def _image_rejection(plan: PlanInfo, monthly_count: int, daily_count: int) -> str | None:
    if plan.image_generation_limit == 0:
        return "현재 플랜에서는 유료 모델 사용이 지원되지 않습니다"

    if not is_unlimited(plan.image_generation_limit) and monthly_count >= plan.image_generation_limit:
        return f"월간 유료 이미지 한도({plan.image_generation_limit}장)를 초과했습니다"

    if (
        not is_unlimited(plan.daily_paid_image_generation_limit)
        and daily_count >= plan.daily_paid_image_generation_limit
    ):
        return f"일일 유료 모델 한도({plan.daily_paid_image_generation_limit}장)를 초과했습니다"

    return None

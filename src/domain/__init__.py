"""Domain layer: errors, schemas, constants."""

from .errors import ErrorCodes, PolicyRejectError
from .schemas import (
    Payment,
    PaymentStatus,
    PlanInfo,
    SavedPost,
    SubscriptionPlan,
    UsageCheckResult,
    UserSubscription,
)

__all__ = [
    "ErrorCodes",
    "PolicyRejectError",
    "Payment",
    "PaymentStatus",
    "PlanInfo",
    "SavedPost",
    "SubscriptionPlan",
    "UsageCheckResult",
    "UserSubscription",
]

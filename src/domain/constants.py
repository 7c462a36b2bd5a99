"""
Domain Constants: 서비스 전역 상수.

플랜 한도, 관리자 ID, 무료 모델 목록, 글 유형 발행 주기 등.
"""

from .schemas import PlanInfo, PostType, SubscriptionPlan

# =============================================================================
# Plans (플랜 한도)
# =============================================================================
# -1 = 무제한

UNLIMITED = -1

PLANS: dict[SubscriptionPlan, PlanInfo] = {
    SubscriptionPlan.FREE: PlanInfo(
        id=SubscriptionPlan.FREE,
        name="무료",
        price=0,
        features=(
            "월 5회 블로그 생성",
            "프리셋 3개 저장",
            "이미지 분석 5회/월",
        ),
        blog_limit=5,
        preset_limit=3,
        image_limit=5,
        image_generation_limit=0,
        daily_paid_image_generation_limit=0,
        token_limit=200_000,
        daily_token_limit=30_000,
    ),
    SubscriptionPlan.BASIC: PlanInfo(
        id=SubscriptionPlan.BASIC,
        name="베이직",
        price=9900,
        features=(
            "월 30회 블로그 생성",
            "프리셋 10개 저장",
            "이미지 분석 30회/월",
            "이메일 지원",
        ),
        blog_limit=30,
        preset_limit=10,
        image_limit=30,
        image_generation_limit=30,
        daily_paid_image_generation_limit=5,
        token_limit=1_500_000,
        daily_token_limit=150_000,
    ),
    SubscriptionPlan.PRO: PlanInfo(
        id=SubscriptionPlan.PRO,
        name="프로",
        price=29900,
        features=(
            "무제한 블로그 생성",
            "프리셋 무제한 저장",
            "이미지 분석 무제한",
            "우선 지원",
            "커스텀 프롬프트",
        ),
        blog_limit=UNLIMITED,
        preset_limit=UNLIMITED,
        image_limit=UNLIMITED,
        image_generation_limit=150,
        daily_paid_image_generation_limit=20,
        token_limit=5_000_000,
        daily_token_limit=500_000,
    ),
    SubscriptionPlan.ENTERPRISE: PlanInfo(
        id=SubscriptionPlan.ENTERPRISE,
        name="엔터프라이즈",
        price=0,  # 문의
        features=(
            "모든 PRO 기능",
            "전담 매니저",
            "API 제공",
            "맞춤 교육",
        ),
        blog_limit=UNLIMITED,
        preset_limit=UNLIMITED,
        image_limit=UNLIMITED,
        image_generation_limit=UNLIMITED,
        daily_paid_image_generation_limit=UNLIMITED,
        token_limit=UNLIMITED,
        daily_token_limit=UNLIMITED,
    ),
}

# =============================================================================
# Usage Metering
# =============================================================================

# 무제한 이용 관리자 계정
ADMIN_USER_ID = "admin-ccv5"

# 사용량 차감 없는 이미지 생성 모델
FREE_IMAGE_MODELS = ("gemini-2.5-flash-image",)

# 키워드 분석 일일 한도
KEYWORD_DAILY_LIMIT = 3
ADMIN_KEYWORD_LIMIT = 999

# =============================================================================
# Firestore Paths
# =============================================================================

SUBSCRIPTION_DOC = "users/{uid}/subscription/current"
SEO_SCHEDULE_DOC = "users/{uid}/seoSchedule/current"
ACTIVITY_LOG_DOC = "users/{uid}/activity/log"
POSTS_COLLECTION = "users/{uid}/posts"
PAYMENTS_COLLECTION = "payments"
KEYWORD_USAGE_COLLECTION = "keyword_usage"
USERS_COLLECTION = "users"
TEAM_DOC = "teams/{owner}"
TEAM_MEMBERSHIP_COLLECTION = "users/{uid}/teamMembership"
BUSINESS_INFO_DOC = "users/{uid}/businessInfo/current"
PRESETS_COLLECTION = "users/{uid}/presets"
API_SETTINGS_DOC = "users/{uid}/settings/api"

# =============================================================================
# Posts (발행 주기)
# =============================================================================

POST_TYPE_INFO: dict[PostType, dict[str, str | int]] = {
    PostType.CENTER_INTRO: {
        "name": "센터 소개",
        "description": "시설 변경, 시즌 이벤트 반영",
        "cycle_days": 30,
    },
    PostType.EQUIPMENT: {
        "name": "기구 소개",
        "description": "스미스머신, 케이블머신 등 시리즈 콘텐츠",
        "cycle_days": 7,
    },
    PostType.PROGRAM: {
        "name": "프로그램 소개",
        "description": "자세교정, 재활운동 등 심층 가이드",
        "cycle_days": 7,
    },
    PostType.TRAINER: {
        "name": "강사 소개",
        "description": "자격증, 경력, 전문 분야",
        "cycle_days": 15,
    },
    PostType.REVIEW: {
        "name": "회원 후기",
        "description": "비포애프터, 인터뷰",
        "cycle_days": 7,
    },
}

# 알림 임계값 (남은 일수)
DUE_SOON_DAYS = 2

# RAG 컨텍스트용 최근 글
RECENT_POSTS_FOR_CONTEXT = 3
RECENT_POST_SNIPPET_CHARS = 500

# 활동 로그 보관 개수
ACTIVITY_LOG_MAX_ENTRIES = 30

# =============================================================================
# Payments (결제 검증)
# =============================================================================

MAX_PAYMENT_AMOUNT = 10_000_000
ORDER_ID_PATTERN = r"^ORDER_[A-Z0-9_]+$"
PAYMENT_KEY_MIN_LENGTH = 10
PAYMENT_KEY_MAX_LENGTH = 200
CANCEL_REASON_MIN_LENGTH = 2
CANCEL_REASON_MAX_LENGTH = 200

# =============================================================================
# MIME Types
# =============================================================================

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def get_mime_type(extension: str) -> str:
    """확장자 → MIME 타입. 모르면 image/jpeg."""
    ext = extension.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    return IMAGE_MIME_TYPES.get(ext, "image/jpeg")

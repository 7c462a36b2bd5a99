"""
Data schemas for the blog service.

규칙:
- Firestore 문서 키는 camelCase 그대로 유지 (웹 클라이언트와 공유)
- 파이썬 속성은 snake_case, to_dict()/from_dict()에서 변환
- 한도 값 -1 = 무제한
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# =============================================================================
# Enums
# =============================================================================


class SubscriptionPlan(str, Enum):
    """구독 플랜."""
    FREE = "FREE"              # 무료
    BASIC = "BASIC"            # 기본 (월 9,900원)
    PRO = "PRO"                # 프로 (월 29,900원)
    ENTERPRISE = "ENTERPRISE"  # 엔터프라이즈 (문의)


class PaymentStatus(str, Enum):
    """결제 상태."""
    PENDING = "PENDING"
    DONE = "DONE"
    CANCELED = "CANCELED"
    PARTIAL_CANCELED = "PARTIAL_CANCELED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class PaymentMethod(str, Enum):
    """결제 수단."""
    CARD = "CARD"
    VIRTUAL_ACCOUNT = "VIRTUAL_ACCOUNT"
    TRANSFER = "TRANSFER"
    MOBILE = "MOBILE"
    EASY_PAY = "EASY_PAY"


class UsageKind(str, Enum):
    """월간 카운터로 관리되는 사용량 종류."""
    BLOG = "blog"
    IMAGE_ANALYSIS = "imageAnalysis"


class PostType(str, Enum):
    """SEO 스케줄 대상 글 유형."""
    CENTER_INTRO = "center_intro"
    EQUIPMENT = "equipment"
    PROGRAM = "program"
    TRAINER = "trainer"
    REVIEW = "review"


class AlertStatus(str, Enum):
    """발행 주기 알림 상태."""
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    OK = "ok"


class Severity(str, Enum):
    """글 검증 이슈 심각도."""
    CRITICAL = "critical"
    WARNING = "warning"


class TeamMemberStatus(str, Enum):
    """팀 멤버 상태."""
    PENDING = "pending"
    ACTIVE = "active"


# =============================================================================
# Plan / Subscription
# =============================================================================


@dataclass(frozen=True)
class PlanInfo:
    """플랜별 가격과 한도."""
    id: SubscriptionPlan
    name: str
    price: int
    features: tuple[str, ...]
    blog_limit: int
    preset_limit: int
    image_limit: int                          # 이미지 분석 (월)
    image_generation_limit: int               # 유료 이미지 생성 (월)
    daily_paid_image_generation_limit: int    # 유료 이미지 생성 (일)
    token_limit: int                          # 토큰 (월)
    daily_token_limit: int                    # 토큰 (일)
    period: str = "monthly"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "name": self.name,
            "price": self.price,
            "period": self.period,
            "features": list(self.features),
            "blogLimit": self.blog_limit,
            "presetLimit": self.preset_limit,
            "imageLimit": self.image_limit,
            "imageGenerationLimit": self.image_generation_limit,
            "dailyPaidImageGenerationLimit": self.daily_paid_image_generation_limit,
            "tokenLimit": self.token_limit,
            "dailyTokenLimit": self.daily_token_limit,
        }


@dataclass
class UserSubscription:
    """
    사용자 구독 정보.

    Firestore: users/{uid}/subscription/current
    """
    user_id: str
    current_plan: SubscriptionPlan
    plan_start_date: datetime
    plan_end_date: datetime

    # 월간 카운터
    blog_count: int = 0
    image_analysis_count: int = 0
    image_generation_count: int = 0
    token_usage: int = 0

    # 일간 카운터
    daily_paid_image_generation_count: int = 0
    daily_image_generation_reset_date: datetime | None = None
    daily_token_usage: int = 0
    daily_token_reset_date: datetime | None = None

    usage_reset_date: datetime | None = None
    is_active: bool = True
    auto_renew: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Firestore 저장용 (camelCase)."""
        return {
            "userId": self.user_id,
            "currentPlan": self.current_plan.value,
            "planStartDate": self.plan_start_date,
            "planEndDate": self.plan_end_date,
            "blogCount": self.blog_count,
            "imageAnalysisCount": self.image_analysis_count,
            "imageGenerationCount": self.image_generation_count,
            "tokenUsage": self.token_usage,
            "dailyPaidImageGenerationCount": self.daily_paid_image_generation_count,
            "dailyImageGenerationResetDate": self.daily_image_generation_reset_date,
            "dailyTokenUsage": self.daily_token_usage,
            "dailyTokenResetDate": self.daily_token_reset_date,
            "usageResetDate": self.usage_reset_date,
            "isActive": self.is_active,
            "autoRenew": self.auto_renew,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, user_id: str, data: dict[str, Any]) -> "UserSubscription":
        """Firestore 문서 → UserSubscription. 누락 카운터는 0."""
        plan_raw = data.get("currentPlan") or SubscriptionPlan.FREE.value
        try:
            plan = SubscriptionPlan(plan_raw)
        except ValueError:
            plan = SubscriptionPlan.FREE

        return cls(
            user_id=data.get("userId") or user_id,
            current_plan=plan,
            plan_start_date=data.get("planStartDate"),
            plan_end_date=data.get("planEndDate"),
            blog_count=int(data.get("blogCount") or 0),
            image_analysis_count=int(data.get("imageAnalysisCount") or 0),
            image_generation_count=int(data.get("imageGenerationCount") or 0),
            token_usage=int(data.get("tokenUsage") or 0),
            daily_paid_image_generation_count=int(
                data.get("dailyPaidImageGenerationCount") or 0
            ),
            daily_image_generation_reset_date=data.get("dailyImageGenerationResetDate"),
            daily_token_usage=int(data.get("dailyTokenUsage") or 0),
            daily_token_reset_date=data.get("dailyTokenResetDate"),
            usage_reset_date=data.get("usageResetDate"),
            is_active=bool(data.get("isActive", True)),
            auto_renew=bool(data.get("autoRenew", False)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class UsageCheckResult:
    """사용량 체크 결과. allowed=False면 reason에 사용자용 사유."""
    allowed: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"allowed": self.allowed}
        if self.reason is not None:
            result["reason"] = self.reason
        return result


@dataclass
class KeywordUsageResult:
    """키워드 분석 일일 사용량."""
    allowed: bool
    remaining: int
    limit: int
    used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
            "used": self.used,
        }


# =============================================================================
# Payment
# =============================================================================


@dataclass
class Payment:
    """
    결제 레코드.

    Firestore: payments/{id}
    """
    id: str
    order_id: str
    user_id: str
    amount: int
    plan: SubscriptionPlan
    plan_name: str
    status: PaymentStatus = PaymentStatus.PENDING
    payment_key: str | None = None
    method: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None
    canceled_at: datetime | None = None
    cancel_reason: str | None = None
    cancel_amount: int | None = None
    toss_response: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "id": self.id,
            "orderId": self.order_id,
            "userId": self.user_id,
            "amount": self.amount,
            "plan": self.plan.value,
            "planName": self.plan_name,
            "status": self.status.value,
            "paymentKey": self.payment_key,
            "method": self.method,
            "createdAt": self.created_at,
            "approvedAt": self.approved_at,
            "canceledAt": self.canceled_at,
            "cancelReason": self.cancel_reason,
            "cancelAmount": self.cancel_amount,
            "tossResponse": self.toss_response,
        }
        # None 값 제거 (Firestore에 빈 필드 남기지 않음)
        return {k: v for k, v in result.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Payment":
        return cls(
            id=data["id"],
            order_id=data.get("orderId", ""),
            user_id=data.get("userId", ""),
            amount=int(data.get("amount") or 0),
            plan=SubscriptionPlan(data.get("plan") or SubscriptionPlan.FREE.value),
            plan_name=data.get("planName", ""),
            status=PaymentStatus(data.get("status") or PaymentStatus.PENDING.value),
            payment_key=data.get("paymentKey"),
            method=data.get("method"),
            created_at=data.get("createdAt"),
            approved_at=data.get("approvedAt"),
            canceled_at=data.get("canceledAt"),
            cancel_reason=data.get("cancelReason"),
            cancel_amount=data.get("cancelAmount"),
            toss_response=data.get("tossResponse"),
        )


# =============================================================================
# Posts / SEO Schedule
# =============================================================================


@dataclass
class SavedPost:
    """
    저장된 블로그 글.

    Firestore: users/{uid}/posts/{id}
    """
    id: str
    title: str
    content: str
    post_type: PostType
    main_keyword: str = ""
    business_name: str = ""
    category: str = ""
    search_intent: str = ""
    image_prompts: list[dict[str, str]] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "postType": self.post_type.value,
            "mainKeyword": self.main_keyword,
            "businessName": self.business_name,
            "category": self.category,
            "searchIntent": self.search_intent,
            "imagePrompts": self.image_prompts,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SavedPost":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            post_type=PostType(data.get("postType") or PostType.CENTER_INTRO.value),
            main_keyword=data.get("mainKeyword", ""),
            business_name=data.get("businessName", ""),
            category=data.get("category", ""),
            search_intent=data.get("searchIntent", ""),
            image_prompts=list(data.get("imagePrompts") or []),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class SeoScheduleItem:
    """글 유형 하나의 최근 발행일/다음 마감일."""
    last_published: datetime | None = None
    next_due: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"lastPublished": self.last_published, "nextDue": self.next_due}


@dataclass
class SeoSchedule:
    """
    글 유형별 발행 스케줄.

    Firestore: users/{uid}/seoSchedule/current (필드명 = PostType 값)
    """
    items: dict[PostType, SeoScheduleItem] = field(
        default_factory=lambda: {post_type: SeoScheduleItem() for post_type in PostType}
    )

    def to_dict(self) -> dict[str, Any]:
        return {post_type.value: item.to_dict() for post_type, item in self.items.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeoSchedule":
        items = {}
        for post_type in PostType:
            raw = data.get(post_type.value) or {}
            items[post_type] = SeoScheduleItem(
                last_published=raw.get("lastPublished"),
                next_due=raw.get("nextDue"),
            )
        return cls(items=items)


@dataclass
class SeoAlert:
    """글 유형별 발행 알림."""
    post_type: PostType
    status: AlertStatus
    days_remaining: int  # 양수: 남은 일수, 음수: 지난 일수
    last_published: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "postType": self.post_type.value,
            "status": self.status.value,
            "daysRemaining": self.days_remaining,
            "lastPublished": self.last_published,
        }


# =============================================================================
# Post Validation
# =============================================================================


@dataclass
class ValidationIssue:
    """글 검증 이슈 하나."""
    code: str
    severity: Severity
    message: str
    fixable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "fixable": self.fixable,
        }


@dataclass
class ValidationReport:
    """
    글 검증 결과.

    score = 100 - 20 * critical - 5 * warning (최소 0)
    passed = critical 없음
    """
    passed: bool
    score: int
    issues: list[ValidationIssue] = field(default_factory=list)
    char_count: int = 0
    auto_fixed: str | None = None

    @property
    def has_fixable(self) -> bool:
        return any(issue.fixable for issue in self.issues)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "passed": self.passed,
            "score": self.score,
            "charCount": self.char_count,
            "issues": [issue.to_dict() for issue in self.issues],
            "hasFixable": self.has_fixable,
        }
        if self.auto_fixed is not None:
            result["autoFixed"] = self.auto_fixed
        return result


# =============================================================================
# Keyword Analysis
# =============================================================================


@dataclass
class KeywordMetric:
    """연관 키워드 경쟁도 분석 결과 한 줄."""
    keyword: str
    monthly_pc: int = 0
    monthly_mobile: int = 0
    document_count: int = 0
    comp_idx: str = ""
    competition_score: int = 0
    competition_level: str = "높음"

    @property
    def total_searches(self) -> int:
        return self.monthly_pc + self.monthly_mobile

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "monthlyPcQcCnt": self.monthly_pc,
            "monthlyMobileQcCnt": self.monthly_mobile,
            "totalSearches": self.total_searches,
            "documentCount": self.document_count,
            "compIdx": self.comp_idx,
            "competitionScore": self.competition_score,
            "competitionLevel": self.competition_level,
        }


# =============================================================================
# Top Blog Learning
# =============================================================================


@dataclass
class BlogStructure:
    """블로그 본문 구조 분석."""
    has_intro: bool = False
    has_conclusion: bool = False
    section_count: int = 0
    image_count: int = 0
    has_faq: bool = False
    has_table: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasIntro": self.has_intro,
            "hasConclusion": self.has_conclusion,
            "sectionCount": self.section_count,
            "imageCount": self.image_count,
            "hasFAQ": self.has_faq,
            "hasTable": self.has_table,
        }


@dataclass
class BlogAnalysis:
    """상위 노출 블로그 1건 분석."""
    title: str
    url: str
    content: str
    word_count: int
    structure: BlogStructure
    keywords: list[str] = field(default_factory=list)
    bloggername: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "content": self.content,
            "structure": self.structure.to_dict(),
            "keywords": self.keywords,
            "wordCount": self.word_count,
            "bloggername": self.bloggername,
        }


@dataclass
class LearningSummary:
    """상위 블로그 평균 통계."""
    avg_word_count: int = 0
    avg_sections: int = 0
    avg_images: int = 0
    title_patterns: list[str] = field(default_factory=list)
    common_structures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgWordCount": self.avg_word_count,
            "avgSections": self.avg_sections,
            "avgImages": self.avg_images,
            "titlePatterns": self.title_patterns,
            "commonStructures": self.common_structures,
        }


@dataclass
class LearningResult:
    """상위 블로그 학습 결과."""
    keyword: str
    total_blogs: int
    successful_blogs: int
    blogs: list[BlogAnalysis] = field(default_factory=list)
    analysis: LearningSummary = field(default_factory=LearningSummary)
    learning_context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "totalBlogs": self.total_blogs,
            "successfulBlogs": self.successful_blogs,
            "blogs": [blog.to_dict() for blog in self.blogs],
            "analysis": self.analysis.to_dict(),
            "learningContext": self.learning_context,
        }


# =============================================================================
# Teams
# =============================================================================


@dataclass
class UserProfile:
    """users/{uid} 문서의 공개 프로필."""
    uid: str
    email: str
    display_name: str | None = None
    photo_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
        }


@dataclass
class TeamMember:
    """팀 소유자의 API 키를 함께 쓰는 멤버."""
    uid: str
    email: str
    display_name: str | None = None
    photo_url: str | None = None
    status: TeamMemberStatus = TeamMemberStatus.ACTIVE
    added_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == TeamMemberStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "status": self.status.value,
            "addedAt": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamMember":
        return cls(
            uid=data["uid"],
            email=data.get("email", ""),
            display_name=data.get("displayName"),
            photo_url=data.get("photoURL"),
            status=TeamMemberStatus(data.get("status") or TeamMemberStatus.ACTIVE.value),
            added_at=data.get("addedAt"),
        )


@dataclass
class Team:
    """
    팀 (소유자 1명 + 멤버 목록).

    Firestore: teams/{ownerId}
    """
    owner_id: str
    owner_email: str
    owner_name: str | None = None
    members: list[TeamMember] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_member(self, uid: str) -> TeamMember | None:
        return next((member for member in self.members if member.uid == uid), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ownerId": self.owner_id,
            "ownerEmail": self.owner_email,
            "ownerName": self.owner_name,
            "members": [member.to_dict() for member in self.members],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Team":
        return cls(
            owner_id=data["ownerId"],
            owner_email=data.get("ownerEmail", ""),
            owner_name=data.get("ownerName"),
            members=[TeamMember.from_dict(item) for item in data.get("members") or []],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class TeamMembership:
    """
    멤버 쪽에서 본 소속 팀.

    Firestore: users/{memberUid}/teamMembership/{ownerId}
    """
    owner_id: str
    owner_email: str
    owner_name: str | None = None
    joined_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ownerId": self.owner_id,
            "ownerEmail": self.owner_email,
            "ownerName": self.owner_name,
            "joinedAt": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamMembership":
        return cls(
            owner_id=data["ownerId"],
            owner_email=data.get("ownerEmail", ""),
            owner_name=data.get("ownerName"),
            joined_at=data.get("joinedAt"),
        )


# =============================================================================
# Settings (업체 정보 / 프리셋 / API 키)
# =============================================================================

DEFAULT_BUSINESS_CATEGORY = "헬스장"


def _blank_keywords() -> list[str]:
    return ["", "", ""]


@dataclass
class BusinessInfo:
    """
    글 작성 폼의 업체 정보.

    빈 값은 폼 기본값으로 채움 (카테고리 헬스장, 키워드 입력칸 3개).
    """
    category: str = DEFAULT_BUSINESS_CATEGORY
    business_name: str = ""
    main_keyword: str = ""
    sub_keywords: list[str] = field(default_factory=_blank_keywords)
    tail_keywords: list[str] = field(default_factory=_blank_keywords)
    target_audience: str = ""
    unique_point: str = ""
    attributes: dict[str, str] = field(default_factory=dict)
    custom_attributes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "businessName": self.business_name,
            "mainKeyword": self.main_keyword,
            "subKeywords": self.sub_keywords,
            "tailKeywords": self.tail_keywords,
            "targetAudience": self.target_audience,
            "uniquePoint": self.unique_point,
            "attributes": self.attributes,
            "customAttributes": self.custom_attributes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BusinessInfo":
        return cls(
            category=data.get("category") or DEFAULT_BUSINESS_CATEGORY,
            business_name=data.get("businessName") or "",
            main_keyword=data.get("mainKeyword") or "",
            sub_keywords=list(data.get("subKeywords") or _blank_keywords()),
            tail_keywords=list(data.get("tailKeywords") or _blank_keywords()),
            target_audience=data.get("targetAudience") or "",
            unique_point=data.get("uniquePoint") or "",
            attributes=dict(data.get("attributes") or {}),
            custom_attributes=list(data.get("customAttributes") or []),
        )


@dataclass
class Preset:
    """
    이름 붙여 저장한 업체 정보.

    Firestore: users/{uid}/presets/{id}
    """
    id: str
    name: str
    info: BusinessInfo = field(default_factory=BusinessInfo)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            **self.info.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Preset":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            info=BusinessInfo.from_dict(data),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class ApiSettings:
    """
    사용자 AI API 키.

    Firestore: users/{uid}/settings/api
    """
    api_provider: str = "gemini"
    api_key: str = ""

    @property
    def key_prefix(self) -> str:
        return f"{self.api_key[:6]}..." if self.api_key else ""

    def to_dict(self) -> dict[str, Any]:
        return {"apiProvider": self.api_provider, "apiKey": self.api_key}

    def to_public_dict(self) -> dict[str, Any]:
        """응답용: 키 원문 대신 앞 6자리만."""
        return {
            "apiProvider": self.api_provider,
            "hasApiKey": bool(self.api_key),
            "keyPrefix": self.key_prefix,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApiSettings":
        return cls(
            api_provider=data.get("apiProvider") or "gemini",
            api_key=data.get("apiKey") or "",
        )

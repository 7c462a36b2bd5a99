"""
Application Services.

역할:
- usage / keyword_usage: 플랜별 사용량 체크 + 증가
- payments / toss: 결제 레코드, 구독, 토스 결제 API
- naver / keywords / trending / learning: 검색, 경쟁도 분석, 인기 검색어, 상위 블로그 학습
- rag / posts: 참고 글 벡터 검색, 저장 글 + SEO 스케줄
- prompts / post_validation: 블로그 프롬프트 조립, 생성 글 검증
- activity: 사용자 활동 기록
- settings / teams: 업체 정보, 프리셋, API 키, 팀 API 키 공유
"""

from .activity import ActivityService, ActivityType
from .keyword_usage import KeywordUsageService
from .keywords import KeywordAnalyzer
from .learning import TopBlogLearner
from .naver import NaverAdsClient, NaverAPIError, NaverSearchClient
from .payments import PaymentService, SubscriptionService
from .posts import PostService
from .rag import RagError, RagService
from .settings import SettingsService
from .teams import TeamService
from .toss import TossAPIError, TossPaymentsClient
from .trending import TrendingService
from .usage import UsageService

__all__ = [
    "ActivityService",
    "ActivityType",
    "KeywordAnalyzer",
    "KeywordUsageService",
    "NaverAPIError",
    "NaverAdsClient",
    "NaverSearchClient",
    "PaymentService",
    "PostService",
    "RagError",
    "RagService",
    "SettingsService",
    "SubscriptionService",
    "TeamService",
    "TopBlogLearner",
    "TossAPIError",
    "TossPaymentsClient",
    "TrendingService",
    "UsageService",
]

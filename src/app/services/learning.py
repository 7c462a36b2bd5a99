"""
상위 노출 블로그 학습.

흐름:
1. 네이버 블로그 검색 (정확도순, 최대 10개)
2. blog.naver.com 글만 모바일 URL로 크롤링 (요청 사이 500ms)
3. 본문 구조/키워드/제목 패턴 분석
4. 평균 통계 + 공통 구조 → 프롬프트용 학습 컨텍스트
"""

import asyncio
import logging
import re
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from bs4 import BeautifulSoup

from src.domain.schemas import BlogAnalysis, BlogStructure, LearningResult, LearningSummary

from .naver import NaverSearchClient

logger = logging.getLogger(__name__)

CONTENT_SELECTORS = (
    ".se-main-container",   # 스마트에디터 ONE
    "#postViewArea",        # 구버전
    ".post_ct",             # 모바일
    ".se_component_wrap",   # 스마트에디터 2
    "#post-view",
    "article",
)

CRAWL_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)

MAX_CONTENT_CHARS = 10_000
MIN_CONTENT_CHARS = 100
PROMPT_CONTENT_CHARS = 3_000
MAX_SEARCH_DISPLAY = 10
REQUEST_DELAY = 0.5

_BLOG_URL_RE = re.compile(r"blog\.naver\.com/([^/]+)/(\d+)")
_SECTION_RE = re.compile(r"[【\[■●▶]|^\d+\.", re.MULTILINE)
_NON_WORD_RE = re.compile(r"[^가-힣a-zA-Z0-9]")

TITLE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("숫자 포함", re.compile(r"\d+")),
    ("질문형", re.compile(r"\?|어떻게|왜")),
    ("리스트형", re.compile(r"\d+가지|\d+개|TOP\d+|베스트", re.IGNORECASE)),
    ("지역명 포함", re.compile(r"강남|홍대|신촌|부산|대구|인천|서울")),
    ("가격 정보", re.compile(r"가격|비용|요금|원")),
    ("후기형", re.compile(r"후기|리뷰|솔직|실제")),
)


# =============================================================================
# Content Extraction
# =============================================================================


def to_mobile_url(url: str) -> str:
    """PC 블로그 URL → m.blog.naver.com/{id}/{no}. 패턴이 아니면 그대로."""
    match = _BLOG_URL_RE.search(url)
    if "blog.naver.com" in url and match:
        return f"https://m.blog.naver.com/{match.group(1)}/{match.group(2)}"
    return url


def extract_blog_content(html: str) -> tuple[str, int] | None:
    """
    HTML → (본문, 이미지 수).

    셀렉터 순서대로 첫 매칭 요소의 텍스트 사용.
    공백 정리 후 10000자 제한, 100자 이하면 None.
    """
    soup = BeautifulSoup(html, "html.parser")

    content = ""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            content = element.get_text()
            break

    image_count = len(soup.find_all("img"))
    content = re.sub(r"\s+", " ", content).strip()[:MAX_CONTENT_CHARS]

    if len(content) <= MIN_CONTENT_CHARS:
        return None
    return content, image_count


# =============================================================================
# Analysis
# =============================================================================


def analyze_structure(content: str) -> BlogStructure:
    """본문 키워드 기반 구조 추정. image_count는 크롤링 결과로 채움."""
    lower = content.lower()
    return BlogStructure(
        has_intro="안녕" in lower or "소개" in lower or len(content[:200]) > 50,
        has_conclusion=any(word in lower for word in ("마무리", "정리", "결론")),
        section_count=len(_SECTION_RE.findall(content)),
        has_faq=any(word in lower for word in ("faq", "자주 묻는", "q&a", "질문")),
        has_table="가격" in lower and ("원" in lower or "₩" in lower),
    )


def extract_keywords(content: str, main_keyword: str, top_n: int = 10) -> list[str]:
    """빈도 상위 단어 (2~10자, 메인 키워드에 포함된 단어 제외)."""
    counter: Counter[str] = Counter()
    for word in content.split():
        cleaned = _NON_WORD_RE.sub("", word)
        if 2 <= len(cleaned) <= 10:
            counter[cleaned] += 1

    ranked = [word for word, _ in counter.most_common() if word not in main_keyword]
    return ranked[:top_n]


def analyze_title_patterns(titles: list[str]) -> list[str]:
    """제목 패턴 빈도순 (동률은 첫 등장 순)."""
    counter: Counter[str] = Counter()
    for title in titles:
        for name, pattern in TITLE_PATTERNS:
            if pattern.search(title):
                counter[name] += 1
    return [name for name, _ in counter.most_common()]


def summarize(blogs: list[BlogAnalysis]) -> LearningSummary:
    """평균 통계 + 공통 구조 (인트로/마무리는 과반, FAQ/가격표는 1개 이상)."""
    if not blogs:
        return LearningSummary()

    total = len(blogs)
    common: list[str] = []
    if sum(b.structure.has_intro for b in blogs) > total / 2:
        common.append("인트로 섹션")
    if any(b.structure.has_faq for b in blogs):
        common.append("FAQ 섹션")
    if any(b.structure.has_table for b in blogs):
        common.append("가격표")
    if sum(b.structure.has_conclusion for b in blogs) > total / 2:
        common.append("마무리 섹션")

    return LearningSummary(
        avg_word_count=round(sum(b.word_count for b in blogs) / total),
        avg_sections=round(sum(b.structure.section_count for b in blogs) / total),
        avg_images=round(sum(b.structure.image_count for b in blogs) / total),
        title_patterns=analyze_title_patterns([b.title for b in blogs]),
        common_structures=common,
    )


def build_learning_context(result: LearningResult) -> str:
    """학습 결과 → 프롬프트 삽입용 텍스트. 성공 0건이면 빈 문자열."""
    if result.successful_blogs == 0:
        return ""

    analysis = result.analysis
    lines = [
        f"【상위노출 블로그 {result.successful_blogs}개 분석 결과】",
        "",
        "📊 평균 통계:",
        f"- 평균 글자수: {analysis.avg_word_count:,}자",
        f"- 평균 섹션 수: {analysis.avg_sections}개",
        f"- 평균 이미지 수: {analysis.avg_images}개",
        "",
        f"🏷️ 제목 패턴: {', '.join(analysis.title_patterns) or '일반형'}",
        "",
        f"📝 공통 구조: {', '.join(analysis.common_structures) or '자유 형식'}",
        "",
        "【상위 블로그 구조 참고】",
    ]

    for index, blog in enumerate(result.blogs[:3], start=1):
        lines.extend([
            "",
            f'{index}. "{blog.title}"',
            f"   - 글자수: {blog.word_count:,}자",
            f"   - 섹션: {blog.structure.section_count}개",
            f"   - FAQ: {'있음' if blog.structure.has_faq else '없음'}",
            f"   - 주요 키워드: {', '.join(blog.keywords[:5])}",
        ])

    first_pattern = analysis.title_patterns[0] if analysis.title_patterns else "정보형"
    lines.extend([
        "",
        "위 분석 결과를 참고하여 비슷한 구조와 분량으로 작성하되, 표절이 아닌 독창적인 콘텐츠를 만들어주세요.",
        f'특히 제목은 "{first_pattern}" 스타일로 작성하면 좋습니다.',
    ])
    return "\n".join(lines) + "\n"


# =============================================================================
# Learner
# =============================================================================


class TopBlogLearner:
    """
    상위 블로그 학습기.

    Usage:
        learner = TopBlogLearner(NaverSearchClient())
        result = await learner.learn("강남 PT", count=5)
    """

    def __init__(
        self,
        search: NaverSearchClient,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        request_delay: float = REQUEST_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.search = search
        self.timeout = timeout
        self.request_delay = request_delay
        self._client = http_client
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def crawl(self, url: str) -> tuple[str, int] | None:
        """블로그 본문 크롤링. 응답 오류/본문 부족이면 None (해당 글만 건너뜀)."""
        crawl_url = to_mobile_url(url)
        try:
            response = await self._get_client().get(
                crawl_url,
                headers={
                    "User-Agent": CRAWL_USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
                },
            )
        except httpx.HTTPError as e:
            logger.warning(f"Blog crawl failed: {crawl_url} ({e})")
            return None

        if response.status_code >= 400:
            logger.warning(f"Blog crawl failed: {crawl_url} ({response.status_code})")
            return None
        return extract_blog_content(response.text)

    async def learn(self, keyword: str, count: int = 5) -> LearningResult:
        """
        상위 블로그 학습.

        Raises:
            ValueError: 키워드가 비어있을 때
            NaverAPIError: 검색 API 키 미설정 또는 검색 실패
        """
        if not keyword or not keyword.strip():
            raise ValueError("키워드를 입력해주세요")

        search = await self.search.search_blog(
            keyword, display=min(count, MAX_SEARCH_DISPLAY), start=1, sort="sim"
        )
        items = search["results"]

        blogs: list[BlogAnalysis] = []
        for item in items[:count]:
            link = item.get("link", "")
            if "blog.naver.com" not in link:
                continue

            crawled = await self.crawl(link)
            if crawled:
                content, image_count = crawled
                structure = analyze_structure(content)
                structure.image_count = image_count
                blogs.append(
                    BlogAnalysis(
                        title=item.get("title", ""),
                        url=link,
                        content=content[:PROMPT_CONTENT_CHARS],
                        word_count=len(content),
                        structure=structure,
                        keywords=extract_keywords(content, keyword),
                        bloggername=item.get("bloggername", ""),
                    )
                )

            await self._sleep(self.request_delay)

        logger.info(f"Learned {len(blogs)}/{len(items)} top blogs for {keyword!r}")

        result = LearningResult(
            keyword=keyword,
            total_blogs=len(items),
            successful_blogs=len(blogs),
            blogs=blogs,
            analysis=summarize(blogs),
        )
        result.learning_context = build_learning_context(result)
        return result

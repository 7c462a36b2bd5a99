"""
실시간 인기 검색어 수집.

소스 (각 최대 10개):
- Google Trends 한국 RSS (feedparser)
- 네이트 모바일/데스크톱 (BeautifulSoup)
- 줌 (BeautifulSoup)

병합 우선순위: Google > Nate > Zum (키워드 중복 제거).
모든 소스 실패 시 고정 목록 + fallback=True.
"""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import feedparser
import httpx
from bs4 import BeautifulSoup

from src.core.clock import now_utc

logger = logging.getLogger(__name__)

GOOGLE_TRENDS_RSS = "https://trends.google.co.kr/trending/rss?geo=KR"
NATE_MOBILE_URL = "https://m.nate.com/"
NATE_DESKTOP_URL = "https://www.nate.com/"
ZUM_URL = "https://zum.com/"

SOURCE_LIMIT = 10

MOBILE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

NATE_SELECTORS = (
    ".biztrend ol li a",
    ".biztrend li a",
    "ol li a .keyword",
    ".keyword_area li a",
)
NATE_DESKTOP_SELECTOR = '[class*="keyword"] li a, [class*="realtime"] li a, .rank_list li a'
ZUM_SELECTORS = (
    ".issue_keyword a",
    ".rank_txt",
    '[class*="issue"] li a',
    '[class*="keyword"] a',
    '[class*="realtime"] li a',
)

# 모든 소스 실패 시 노출 (피트니스 업종 상시 키워드)
FALLBACK_KEYWORDS = (
    "다이어트 식단",
    "홈트레이닝",
    "필라테스 효과",
    "PT 가격",
    "헬스장 추천",
    "바디프로필",
    "자세교정",
    "근력운동 루틴",
    "러닝 입문",
    "단백질 보충제",
)

_RANK_PREFIX_RE = re.compile(r"^\d+\.?\s*")
_BADGE_RE = re.compile(r"HOT|NEW|↑|↓", re.IGNORECASE)


@dataclass
class TrendingKeyword:
    keyword: str
    rank: int
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {"keyword": self.keyword, "rank": self.rank, "source": self.source}


def clean_keyword(text: str) -> str:
    """순위 번호, 공백, HOT/NEW 뱃지 제거."""
    keyword = _RANK_PREFIX_RE.sub("", text.strip())
    keyword = re.sub(r"\s+", " ", keyword).strip()
    return _BADGE_RE.sub("", keyword).strip()


def _append_unique(keywords: list[TrendingKeyword], keyword: str, source: str) -> None:
    if keyword and 1 < len(keyword) < 30 and all(k.keyword != keyword for k in keywords):
        keywords.append(TrendingKeyword(keyword=keyword, rank=len(keywords) + 1, source=source))


def parse_google_trends(xml: str) -> list[TrendingKeyword]:
    """RSS item 제목 (상위 20개 중 50자 미만) → 최대 10개."""
    feed = feedparser.parse(xml)
    keywords: list[TrendingKeyword] = []
    for index, entry in enumerate(feed.entries):
        title = (entry.get("title") or "").strip()
        if index >= 20:
            break
        if title and len(title) < 50 and all(k.keyword != title for k in keywords):
            keywords.append(TrendingKeyword(keyword=title, rank=len(keywords) + 1, source="google"))
    return keywords[:SOURCE_LIMIT]


def parse_nate(html: str) -> list[TrendingKeyword]:
    """네이트 모바일: .keyword span 우선, 없으면 링크 텍스트."""
    soup = BeautifulSoup(html, "html.parser")
    keywords: list[TrendingKeyword] = []
    for selector in NATE_SELECTORS:
        for element in soup.select(selector):
            span = element.select_one(".keyword")
            text = span.get_text() if span else element.get_text()
            _append_unique(keywords, clean_keyword(text), "nate")
        if len(keywords) >= SOURCE_LIMIT:
            break
    return keywords[:SOURCE_LIMIT]


def parse_nate_desktop(html: str) -> list[TrendingKeyword]:
    soup = BeautifulSoup(html, "html.parser")
    keywords: list[TrendingKeyword] = []
    for element in soup.select(NATE_DESKTOP_SELECTOR):
        _append_unique(keywords, clean_keyword(element.get_text()), "nate")
    return keywords[:SOURCE_LIMIT]


def parse_zum(html: str) -> list[TrendingKeyword]:
    """줌: 셀렉터별 상위 20개 요소까지만 확인."""
    soup = BeautifulSoup(html, "html.parser")
    keywords: list[TrendingKeyword] = []
    for selector in ZUM_SELECTORS:
        for element in soup.select(selector)[:20]:
            _append_unique(keywords, clean_keyword(element.get_text()), "zum")
        if len(keywords) >= SOURCE_LIMIT:
            break
    return keywords[:SOURCE_LIMIT]


def merge_keywords(*sources: list[TrendingKeyword]) -> list[TrendingKeyword]:
    """앞 소스 우선으로 키워드 중복 제거."""
    merged: dict[str, TrendingKeyword] = {}
    for source in sources:
        for item in source:
            merged.setdefault(item.keyword, item)
    return list(merged.values())


class TrendingService:
    """인기 검색어 수집기. 소스별 실패는 빈 리스트로 처리."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], Any] = now_utc,
    ):
        self.timeout = timeout
        self._client = http_client
        self._clock = clock

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def _fetch(self, url: str, user_agent: str, accept: str) -> str | None:
        try:
            response = await self._get_client().get(
                url,
                headers={
                    "User-Agent": user_agent,
                    "Accept": accept,
                    "Accept-Language": "ko-KR,ko;q=0.9",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Trending fetch failed: {url} ({e})")
            return None

        if response.status_code >= 400:
            logger.error(f"Trending fetch failed: {url} ({response.status_code})")
            return None
        return response.text

    async def google(self) -> list[TrendingKeyword]:
        xml = await self._fetch(
            GOOGLE_TRENDS_RSS,
            "Mozilla/5.0 (compatible; BlogBooster/1.0)",
            "application/rss+xml, application/xml, text/xml",
        )
        return parse_google_trends(xml) if xml else []

    async def nate(self) -> list[TrendingKeyword]:
        html = await self._fetch(
            NATE_MOBILE_URL, MOBILE_UA, "text/html,application/xhtml+xml,*/*;q=0.8"
        )
        keywords = parse_nate(html) if html else []
        if keywords:
            return keywords

        desktop = await self._fetch(NATE_DESKTOP_URL, DESKTOP_UA, "text/html")
        return parse_nate_desktop(desktop) if desktop else []

    async def zum(self) -> list[TrendingKeyword]:
        html = await self._fetch(ZUM_URL, DESKTOP_UA, "text/html,application/xhtml+xml,*/*;q=0.8")
        return parse_zum(html) if html else []

    async def get_trending(self) -> dict[str, Any]:
        """세 소스 병렬 수집 후 병합."""
        google, nate, zum = await asyncio.gather(self.google(), self.nate(), self.zum())
        logger.info(f"Trending sources - Google: {len(google)}, Nate: {len(nate)}, Zum: {len(zum)}")

        merged = merge_keywords(google, nate, zum)
        fallback = not merged
        if fallback:
            merged = [
                TrendingKeyword(keyword=k, rank=i + 1, source="fallback")
                for i, k in enumerate(FALLBACK_KEYWORDS)
            ]

        return {
            "keywords": [k.to_dict() for k in merged],
            "googleKeywords": [k.to_dict() for k in google],
            "nateKeywords": [k.to_dict() for k in (nate or google[:SOURCE_LIMIT])],
            "zumKeywords": [k.to_dict() for k in zum],
            "sources": {"google": len(google), "nate": len(nate), "zum": len(zum)},
            "total": len(merged),
            "timestamp": self._clock().isoformat(),
            "fallback": fallback,
        }

"""
키워드 경쟁도 분석.

흐름:
1. 입력 분리 (쉼표/세미콜론/줄바꿈), 공백 제거
2. 연관 키워드 = 원본 + 자동완성 + 접미사 조합 (중복 제거)
3. 검색광고 API 설정 시: 검색량 + compIdx + 문서 수로 점수
   미설정/실패 시: 문서 수만으로 점수 (fallback)
4. 점수 내림차순 → 총 검색량 내림차순
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from src.domain.schemas import KeywordMetric

from .naver import NaverAdsClient, NaverAPIError, NaverSearchClient

logger = logging.getLogger(__name__)

SHORT_SUFFIXES = (
    "추천", "가격", "후기", "비용", "효과",
    "방법", "순위", "비교", "종류", "선택",
    "할인", "이벤트", "위치", "장점", "단점", "팁",
)

LONG_SUFFIXES = (
    "추천 순위", "가격 비교", "후기 모음", "비용 절약",
    "효과 좋은", "이용 방법", "장단점 비교", "종류 정리",
    "예약 방법", "할인 이벤트", "이용 후기", "추천 이유",
    "선택 가이드", "완벽 가이드", "구매 가이드", "비교 분석",
    "사용법 정리", "주의사항", "꿀팁 모음", "베스트 추천",
    "실제 후기", "상세 리뷰", "전격 비교", "총정리",
    "추천 best", "인기 순위", "TOP 추천", "완벽 정리",
)

RELATED_KEYWORD_LIMIT = 80
DOCUMENT_COUNT_DELAY = 0.1
NO_SEARCH_VOLUME_NOTE = "검색량 데이터를 보려면 네이버 광고 API 설정이 필요합니다."

_SPLIT_RE = re.compile(r"[,;，\n]+")


def split_keywords(raw: str) -> list[str]:
    """입력 문자열 → 키워드 목록 (각 키워드 내부 공백 제거)."""
    return [
        re.sub(r"\s+", "", part.strip())
        for part in _SPLIT_RE.split(raw or "")
        if part.strip()
    ]


def normalize_count(value: Any) -> int:
    """검색량 정규화. "< 10" 같은 문자열은 5."""
    if isinstance(value, str):
        return 5
    return int(value or 0)


def calculate_competition(comp_idx: str, document_count: int) -> tuple[str, int]:
    """
    경쟁도 계산.

    점수:
    - compIdx: 낮음 +40, 중간 +20
    - 문서 수: <1만 +30, <5만 +20, <20만 +10

    Returns:
        (level, score). score ≥ 50 낮음, ≥ 25 중간, 그 외 높음
    """
    score = 0
    if comp_idx == "낮음":
        score += 40
    elif comp_idx == "중간":
        score += 20

    if document_count < 10_000:
        score += 30
    elif document_count < 50_000:
        score += 20
    elif document_count < 200_000:
        score += 10

    if score >= 50:
        level = "낮음"
    elif score >= 25:
        level = "중간"
    else:
        level = "높음"
    return level, score


def fallback_score(document_count: int) -> tuple[str, int]:
    """검색량 없이 문서 수만으로 경쟁도. score ≥ 60 낮음, ≥ 30 중간."""
    if document_count < 5_000:
        score = 80
    elif document_count < 10_000:
        score = 70
    elif document_count < 30_000:
        score = 50
    elif document_count < 100_000:
        score = 30
    else:
        score = 10

    if score >= 60:
        level = "낮음"
    elif score >= 30:
        level = "중간"
    else:
        level = "높음"
    return level, score


def generate_related_keywords(main_keyword: str, limit: int = RELATED_KEYWORD_LIMIT) -> list[str]:
    """
    접미사 조합 연관 키워드.

    - 짧은 접미사: 띄어쓰기 O/X 둘 다
    - 긴 접미사: 띄어쓰기 O만
    """
    keywords = [main_keyword]
    for suffix in SHORT_SUFFIXES:
        keywords.append(f"{main_keyword} {suffix}")
        keywords.append(f"{main_keyword}{suffix}")
    for suffix in LONG_SUFFIXES:
        keywords.append(f"{main_keyword} {suffix}")
    return keywords[:limit]


class KeywordAnalyzer:
    """
    연관 키워드 경쟁도 분석기.

    Usage:
        analyzer = KeywordAnalyzer(NaverSearchClient(), NaverAdsClient())
        result = await analyzer.analyze("강남헬스장", offset=0, limit=50)
    """

    def __init__(
        self,
        search: NaverSearchClient,
        ads: NaverAdsClient | None = None,
        document_count_delay: float = DOCUMENT_COUNT_DELAY,
        related_keyword_limit: int = RELATED_KEYWORD_LIMIT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.search = search
        self.ads = ads
        self.document_count_delay = document_count_delay
        self.related_keyword_limit = related_keyword_limit
        self._sleep = sleep

    async def collect_candidates(self, main_keyword: str) -> list[str]:
        """원본 + 자동완성 + 접미사 조합 (순서 유지, 중복 제거)."""
        suggestions = await self.search.autocomplete(main_keyword)
        generated = generate_related_keywords(main_keyword, self.related_keyword_limit)
        return list(dict.fromkeys([main_keyword, *suggestions, *generated]))

    async def document_counts(self, keywords: list[str]) -> list[int]:
        """문서 수 순차 조회 (요청 사이 document_count_delay 대기)."""
        counts = []
        for index, keyword in enumerate(keywords):
            counts.append(await self.search.get_document_count(keyword))
            if index < len(keywords) - 1:
                await self._sleep(self.document_count_delay)
        return counts

    async def analyze(self, keyword: str, offset: int = 0, limit: int = 50) -> dict[str, Any]:
        """
        경쟁도 분석.

        Raises:
            ValueError: 키워드가 비어있을 때
        """
        keywords = split_keywords(keyword)
        if not keywords:
            raise ValueError("키워드를 입력해주세요")

        candidates = await self.collect_candidates(keywords[0])
        logger.info(f"Keyword candidates for {keywords[0]!r}: {len(candidates)}")

        if self.ads is not None and self.ads.is_configured:
            try:
                ads_keywords = await self.ads.keyword_tool(candidates)
            except (NaverAPIError, httpx.HTTPError) as e:
                logger.warning(f"Search ads unavailable, falling back to document counts: {e}")
            else:
                if ads_keywords:
                    return await self._analyze_with_volume(keyword, ads_keywords, offset, limit)

        return await self._analyze_fallback(keyword, candidates)

    async def _analyze_with_volume(
        self,
        searched: str,
        ads_keywords: list[dict[str, Any]],
        offset: int,
        limit: int,
    ) -> dict[str, Any]:
        total_available = len(ads_keywords)
        page = ads_keywords[offset:offset + limit]
        if not page:
            return {
                "keywords": [],
                "total": 0,
                "totalAvailable": total_available,
                "hasMore": False,
                "searchedKeyword": searched,
                "hasSearchVolume": True,
            }

        counts = await self.document_counts([item.get("relKeyword", "") for item in page])

        metrics = []
        for item, count in zip(page, counts, strict=True):
            comp_idx = item.get("compIdx") or ""
            level, score = calculate_competition(comp_idx, count)
            metrics.append(
                KeywordMetric(
                    keyword=item.get("relKeyword", ""),
                    monthly_pc=normalize_count(item.get("monthlyPcQcCnt")),
                    monthly_mobile=normalize_count(item.get("monthlyMobileQcCnt")),
                    document_count=count,
                    comp_idx=comp_idx,
                    competition_score=score,
                    competition_level=level,
                )
            )

        metrics.sort(key=lambda m: (-m.competition_score, -m.total_searches))
        return {
            "keywords": [m.to_dict() for m in metrics],
            "total": len(metrics),
            "totalAvailable": total_available,
            "hasMore": offset + limit < total_available,
            "searchedKeyword": searched,
            "hasSearchVolume": True,
        }

    async def _analyze_fallback(self, searched: str, candidates: list[str]) -> dict[str, Any]:
        counts = await self.document_counts(candidates)

        metrics = []
        for keyword, count in zip(candidates, counts, strict=True):
            level, score = fallback_score(count)
            metrics.append(
                KeywordMetric(
                    keyword=keyword,
                    document_count=count,
                    competition_score=score,
                    competition_level=level,
                )
            )

        metrics.sort(key=lambda m: -m.competition_score)
        return {
            "keywords": [m.to_dict() for m in metrics],
            "total": len(metrics),
            "searchedKeyword": searched,
            "hasSearchVolume": False,
            "note": NO_SEARCH_VOLUME_NOTE,
        }

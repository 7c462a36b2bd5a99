"""
Naver API 클라이언트.

- NaverSearchClient: 검색 API (지역/블로그), 자동완성, 모바일 검색 플레이스 상세
- NaverAdsClient: 검색광고 keywordstool (HMAC-SHA256 서명)

인증 정보는 환경변수에서만 읽음:
NAVER_CLIENT_ID / NAVER_CLIENT_SECRET, NAVER_AD_API_KEY / NAVER_AD_SECRET_KEY / NAVER_AD_CUSTOMER_ID
"""

import base64
import hashlib
import hmac
import logging
import os
import re
import time
from collections.abc import Callable
from typing import Any

import httpx

from src.app.providers.base import ProviderError

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = "https://openapi.naver.com/v1/search"
AUTOCOMPLETE_URL = "https://ac.search.naver.com/nx/ac"
MOBILE_SEARCH_URL = "https://m.search.naver.com/search.naver"
ADS_BASE_URL = "https://api.naver.com"
KEYWORD_TOOL_URI = "/keywordstool"

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Mobile Safari/537.36"
)
DESKTOP_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

AUTOCOMPLETE_LIMIT = 30
PLACE_CHUNK_CHARS = 5000

_TAG_RE = re.compile(r"<[^>]*>")


class NaverAPIError(ProviderError):
    """네이버 API 에러."""
    pass


def strip_tags(text: str | None) -> str:
    """검색 결과의 <b> 등 HTML 태그 제거."""
    return _TAG_RE.sub("", text or "")


# =============================================================================
# Search API
# =============================================================================


class NaverSearchClient:
    """
    네이버 검색 API 클라이언트.

    Usage:
        naver = NaverSearchClient()
        places = await naver.search_local("강남 헬스장")
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.client_id = client_id or os.environ.get("NAVER_CLIENT_ID", "")
        self.client_secret = client_secret or os.environ.get("NAVER_CLIENT_SECRET", "")
        self.timeout = timeout
        self._client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _require_keys(self) -> None:
        if not self.is_configured:
            raise NaverAPIError(
                "NAVER_KEY_MISSING", "네이버 API 키가 설정되지 않았습니다", status_code=500
            )

    async def _search(self, kind: str, params: dict[str, Any]) -> dict[str, Any]:
        self._require_keys()
        response = await self._get_client().get(
            f"{SEARCH_BASE_URL}/{kind}.json",
            params=params,
            headers={
                "X-Naver-Client-Id": self.client_id,
                "X-Naver-Client-Secret": self.client_secret,
            },
        )
        if response.status_code >= 400:
            raise NaverAPIError(
                "NAVER_API_ERROR",
                f"네이버 API 오류: {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def search_local(self, query: str) -> list[dict[str, str]]:
        """지역 검색 (리뷰순 5건)."""
        data = await self._search("local", {"query": query, "display": 5, "sort": "comment"})
        return [
            {
                "title": strip_tags(item.get("title")),
                "category": item.get("category", ""),
                "address": item.get("address", ""),
                "roadAddress": item.get("roadAddress", ""),
                "telephone": item.get("telephone", ""),
                "link": item.get("link", ""),
            }
            for item in data.get("items") or []
        ]

    async def search_blog(
        self,
        query: str,
        display: int = 10,
        start: int = 1,
        sort: str = "sim",
    ) -> dict[str, Any]:
        """
        블로그 검색.

        Returns:
            {total, start, display, results: [{title, link, description, bloggername, bloggerlink, postdate}]}
        """
        data = await self._search(
            "blog", {"query": query, "display": display, "start": start, "sort": sort}
        )
        results = [
            {
                "title": strip_tags(item.get("title")),
                "link": item.get("link", ""),
                "description": strip_tags(item.get("description")),
                "bloggername": item.get("bloggername", ""),
                "bloggerlink": item.get("bloggerlink", ""),
                "postdate": item.get("postdate", ""),
            }
            for item in data.get("items") or []
        ]
        return {
            "total": data.get("total", 0),
            "start": data.get("start", start),
            "display": data.get("display", display),
            "results": results,
        }

    async def get_document_count(self, keyword: str) -> int:
        """
        블로그 문서 수 (경쟁도 계산용).

        실패 시 0 (경쟁도 분석은 계속 진행).
        """
        try:
            data = await self._search("blog", {"query": keyword, "display": 1})
        except (NaverAPIError, httpx.HTTPError) as e:
            logger.warning(f"Document count failed for {keyword!r}: {e}")
            return 0
        return int(data.get("total") or 0)

    async def autocomplete(self, keyword: str) -> list[str]:
        """네이버 자동완성 연관 검색어 (최대 30개). 실패 시 빈 리스트."""
        params = {
            "q": keyword,
            "con": 0,
            "frm": "nv",
            "ans": 2,
            "r_format": "json",
            "r_enc": "UTF-8",
            "r_unicode": 0,
            "t_koreng": 1,
            "run": 2,
            "rev": 4,
            "q_enc": "UTF-8",
            "st": 100,
        }
        try:
            response = await self._get_client().get(
                AUTOCOMPLETE_URL, params=params, headers={"User-Agent": DESKTOP_USER_AGENT}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Naver autocomplete failed for {keyword!r}: {e}")
            return []

        items = (data.get("items") or [[]])[0] or []
        keywords = [item[0] for item in items if item and item[0]]
        return keywords[:AUTOCOMPLETE_LIMIT]

    async def get_place_detail(self, place_name: str) -> list[dict[str, Any]]:
        """
        모바일 검색 HTML에서 플레이스 상세 추출.

        Raises:
            NaverAPIError: 검색 페이지 응답 오류
        """
        response = await self._get_client().get(
            MOBILE_SEARCH_URL,
            params={"query": place_name, "where": "m"},
            headers={
                "User-Agent": MOBILE_USER_AGENT,
                "Accept": "text/html,application/xhtml+xml",
                "Accept-Language": "ko-KR,ko;q=0.9",
            },
        )
        if response.status_code >= 400:
            raise NaverAPIError(
                "NAVER_SEARCH_ERROR", "네이버 검색 오류", status_code=response.status_code
            )
        return parse_place_details(response.text)


# =============================================================================
# Place Detail Parsing
# =============================================================================

_PLACE_ID_RE = re.compile(r'"id":"(\d{5,})","gdid"')
_MENUS_RE = re.compile(r'"menus"\s*:\s*\[([^\]]*)\]')
_HOURS_RE = re.compile(
    r'"newBusinessHours"\s*:\s*\{[^}]*"status"\s*:\s*"?([^",}]*)"?[^}]*"description"\s*:\s*"?([^",}]*)"?'
)
_DAY_OFF_RE = re.compile(r'"dayOff"\s*:\s*"?([^",}]*)"?')
_DAY_OFF_DESC_RE = re.compile(r'"dayOffDescription"\s*:\s*"?([^",}]*)"?')


def parse_place_details(html: str) -> list[dict[str, Any]]:
    """인라인 JSON 블록 → 플레이스 상세 목록 (placeId 중복 제거, 순서 유지)."""
    place_ids = list(dict.fromkeys(_PLACE_ID_RE.findall(html)))
    details = []
    for place_id in place_ids:
        detail = _parse_single_place(html, place_id)
        if detail:
            details.append(detail)
    return details


def _decode(value: str) -> str:
    return re.sub(r"\\u003C[^>]*\\u003E", "", value.replace("\\u002F", "/"))


def _nullable(match: re.Match[str] | None) -> str | None:
    if match and match.group(1) and match.group(1) != "null":
        return match.group(1)
    return None


def _parse_single_place(html: str, place_id: str) -> dict[str, Any] | None:
    start = html.find(f'"id":"{place_id}","gdid"')
    if start == -1:
        return None
    chunk = html[start:start + PLACE_CHUNK_CHARS]

    def get_string(key: str) -> str:
        match = re.search(rf'"{key}"\s*:\s*(?:"([^"]*?)"|null)', chunk)
        return (match.group(1) or "") if match else ""

    name = get_string("normalizedName") or get_string("name")
    if not name:
        return None

    menus: list[str] = []
    menus_match = _MENUS_RE.search(chunk)
    if menus_match and menus_match.group(1):
        menus = [_decode(m) for m in re.findall(r'"([^"]*)"', menus_match.group(1))]

    hours = _HOURS_RE.search(chunk)

    return {
        "name": strip_tags(_decode(name)),
        "category": get_string("category"),
        "roadAddress": _decode(get_string("roadAddress")),
        "fullAddress": _decode(get_string("fullAddress")),
        "phone": get_string("phone"),
        "virtualPhone": get_string("virtualPhone"),
        "menus": menus,
        "businessHoursStatus": hours.group(1).replace("null", "") if hours else "",
        "businessHoursDescription": hours.group(2).replace("null", "") if hours else "",
        "dayOff": _nullable(_DAY_OFF_RE.search(chunk)),
        "dayOffDescription": _nullable(_DAY_OFF_DESC_RE.search(chunk)),
        "visitorReviewCount": get_string("visitorReviewCount"),
        "bookingUrl": get_string("bookingUrl") or None,
    }


# =============================================================================
# Search Ads API
# =============================================================================


def generate_signature(timestamp: str, method: str, uri: str, secret_key: str) -> str:
    """검색광고 API 서명: base64(HMAC-SHA256("{timestamp}.{method}.{uri}"))."""
    message = f"{timestamp}.{method}.{uri}"
    digest = hmac.new(secret_key.encode(), message.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class NaverAdsClient:
    """
    네이버 검색광고 keywordstool 클라이언트.

    customer_id의 하이픈은 제거해서 사용.
    """

    def __init__(
        self,
        api_key: str | None = None,
        secret_key: str | None = None,
        customer_id: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = (api_key or os.environ.get("NAVER_AD_API_KEY", "")).strip()
        self.secret_key = (secret_key or os.environ.get("NAVER_AD_SECRET_KEY", "")).strip()
        self.customer_id = (
            (customer_id or os.environ.get("NAVER_AD_CUSTOMER_ID", "")).strip().replace("-", "")
        )
        self.timeout = timeout
        self._client = http_client
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.secret_key and self.customer_id)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def build_headers(self, method: str = "GET", uri: str = KEYWORD_TOOL_URI) -> dict[str, str]:
        timestamp = str(int(self._clock() * 1000))
        return {
            "X-Timestamp": timestamp,
            "X-API-KEY": self.api_key,
            "X-Customer": self.customer_id,
            "X-Signature": generate_signature(timestamp, method, uri, self.secret_key),
            "Content-Type": "application/json; charset=UTF-8",
        }

    async def keyword_tool(self, hints: list[str]) -> list[dict[str, Any]]:
        """
        연관 키워드 + 월간 검색량.

        Args:
            hints: 힌트 키워드 (줄바꿈으로 합쳐 전송)

        Returns:
            keywordList 항목 [{relKeyword, monthlyPcQcCnt, monthlyMobileQcCnt, compIdx, ...}]

        Raises:
            NaverAPIError: 인증 미설정 또는 200 외 응답
        """
        if not self.is_configured:
            raise NaverAPIError(
                "NAVER_ADS_KEY_MISSING", "네이버 광고 API 키가 설정되지 않았습니다", status_code=400
            )

        response = await self._get_client().get(
            f"{ADS_BASE_URL}{KEYWORD_TOOL_URI}",
            params={"hintKeywords": "\n".join(hints), "showDetail": "1"},
            headers=self.build_headers("GET", KEYWORD_TOOL_URI),
        )
        if response.status_code != 200:
            logger.error(f"Naver Ads API error ({response.status_code}): {response.text[:500]}")
            raise NaverAPIError(
                "NAVER_ADS_ERROR",
                f"Status {response.status_code}: {response.text or '(empty)'}",
                status_code=response.status_code,
            )

        keyword_list = response.json().get("keywordList") or []
        logger.info(f"Naver Ads keywords found: {len(keyword_list)}")
        return keyword_list

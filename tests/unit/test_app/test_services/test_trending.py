"""
test_trending.py - 인기 검색어 수집 테스트

검증 포인트:
1. 소스별 파싱 (Google RSS, 네이트 모바일/데스크톱, 줌)
2. 키워드 정리 (순위 번호, 뱃지 제거)
3. 병합 우선순위 + 중복 제거
4. 모든 소스 실패 시 fallback 목록
"""

import httpx
import pytest

from src.app.services.trending import (
    FALLBACK_KEYWORDS,
    TrendingKeyword,
    TrendingService,
    clean_keyword,
    merge_keywords,
    parse_google_trends,
    parse_nate,
    parse_nate_desktop,
    parse_zum,
)

GOOGLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Daily Search Trends</title>
<item><title>손흥민</title></item>
<item><title>날씨</title></item>
<item><title>손흥민</title></item>
</channel></rss>"""

NATE_MOBILE_HTML = """
<div class="biztrend"><ol>
  <li><a href="#"><span class="rank">1</span><span class="keyword">다이어트 HOT</span></a></li>
  <li><a href="#"><span class="keyword">필라테스</span></a></li>
</ol></div>
"""

NATE_DESKTOP_HTML = """
<ol class="rank_list"><li><a href="#">1. 날씨</a></li><li><a href="#">2. 환율 NEW</a></li></ol>
"""

ZUM_HTML = """
<div class="issue_keyword"><a href="#">1 손흥민</a><a href="#">주식</a><a href="#">가</a></div>
"""


class TestParsers:
    """소스별 파서."""

    def test_clean_keyword(self):
        assert clean_keyword(" 1. 다이어트   식단 HOT ") == "다이어트 식단"
        assert clean_keyword("3 환율↑") == "환율"

    def test_parse_google_trends_dedupes(self):
        keywords = parse_google_trends(GOOGLE_RSS)

        assert [k.keyword for k in keywords] == ["손흥민", "날씨"]
        assert keywords[1].rank == 2
        assert keywords[0].source == "google"

    def test_parse_nate_prefers_keyword_span(self):
        keywords = parse_nate(NATE_MOBILE_HTML)

        assert [k.keyword for k in keywords] == ["다이어트", "필라테스"]

    def test_parse_nate_desktop(self):
        assert [k.keyword for k in parse_nate_desktop(NATE_DESKTOP_HTML)] == ["날씨", "환율"]

    def test_parse_zum_skips_single_character(self):
        assert [k.keyword for k in parse_zum(ZUM_HTML)] == ["손흥민", "주식"]

    def test_merge_keeps_first_source(self):
        google = [TrendingKeyword("손흥민", 1, "google")]
        zum = [TrendingKeyword("손흥민", 1, "zum"), TrendingKeyword("주식", 2, "zum")]

        merged = merge_keywords(google, [], zum)

        assert [(k.keyword, k.source) for k in merged] == [("손흥민", "google"), ("주식", "zum")]


def make_service(handler, clock) -> TrendingService:
    return TrendingService(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=clock,
    )


class TestTrendingService:
    """get_trending."""

    @pytest.mark.asyncio
    async def test_merges_all_sources(self, clock, fixed_now):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "trends.google.co.kr":
                return httpx.Response(200, text=GOOGLE_RSS)
            if request.url.host == "m.nate.com":
                return httpx.Response(500)
            if request.url.host == "www.nate.com":
                return httpx.Response(200, text=NATE_DESKTOP_HTML)
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_service(handler, clock).get_trending()

        assert [k["keyword"] for k in result["keywords"]] == ["손흥민", "날씨", "환율"]
        assert result["sources"] == {"google": 2, "nate": 2, "zum": 0}
        assert result["total"] == 3
        assert result["fallback"] is False
        assert result["timestamp"] == fixed_now.isoformat()

    @pytest.mark.asyncio
    async def test_all_sources_fail_uses_fallback(self, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        result = await make_service(handler, clock).get_trending()

        assert result["fallback"] is True
        assert result["total"] == len(FALLBACK_KEYWORDS)
        assert result["keywords"][0] == {"keyword": "다이어트 식단", "rank": 1, "source": "fallback"}
        assert result["nateKeywords"] == []

    @pytest.mark.asyncio
    async def test_nate_mobile_success_skips_desktop(self, clock):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "m.nate.com":
                return httpx.Response(200, text=NATE_MOBILE_HTML)
            return httpx.Response(404)

        result = await make_service(handler, clock).get_trending()

        assert "www.nate.com" not in hosts
        assert [k["keyword"] for k in result["nateKeywords"]] == ["다이어트", "필라테스"]

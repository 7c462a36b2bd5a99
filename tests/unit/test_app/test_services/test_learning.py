"""
test_learning.py - 상위 블로그 학습 테스트

검증 포인트:
1. 모바일 URL 변환 / 본문 추출
2. 구조/키워드/제목 패턴 분석
3. 요약 통계 + 학습 컨텍스트
4. learn: 네이버 블로그만 크롤링, 실패 글은 건너뜀
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.app.services.learning import (
    TopBlogLearner,
    analyze_structure,
    analyze_title_patterns,
    build_learning_context,
    extract_blog_content,
    extract_keywords,
    summarize,
    to_mobile_url,
)
from src.domain.schemas import BlogAnalysis, BlogStructure, LearningResult

BODY = (
    "안녕하세요 강남 PT 센터입니다. "
    + "스쿼트 데드리프트 벤치프레스 " * 10
    + "【가격 안내】 1회 5만원 "
    + "마무리 정리합니다."
)

BLOG_HTML = f"""
<html><body>
<div class="se-main-container"><p>{BODY}</p><img src="a.jpg"><img src="b.jpg"></div>
</body></html>
"""


class TestExtraction:
    """URL 변환 / 본문 추출."""

    def test_to_mobile_url(self):
        assert to_mobile_url("https://blog.naver.com/gym/2231") == "https://m.blog.naver.com/gym/2231"
        assert to_mobile_url("https://blog.naver.com/PostView.naver?blogId=gym") == (
            "https://blog.naver.com/PostView.naver?blogId=gym"
        )
        assert to_mobile_url("https://tistory.com/a") == "https://tistory.com/a"

    def test_extract_blog_content(self):
        content, image_count = extract_blog_content(BLOG_HTML)

        assert content.startswith("안녕하세요 강남 PT")
        assert "  " not in content
        assert image_count == 2

    def test_short_content_returns_none(self):
        assert extract_blog_content("<article>짧은 글</article>") is None

    def test_falls_back_to_article(self):
        html = f"<article>{'헬스 ' * 60}</article>"

        content, _ = extract_blog_content(html)

        assert content.startswith("헬스")


class TestAnalysis:
    """본문/제목 분석."""

    def test_analyze_structure(self):
        structure = analyze_structure(BODY)

        assert structure.has_intro is True
        assert structure.has_conclusion is True
        assert structure.section_count == 1
        assert structure.has_faq is False
        assert structure.has_table is True

    def test_extract_keywords_excludes_main_keyword(self):
        keywords = extract_keywords(BODY, "강남 PT")

        assert keywords[:3] == ["스쿼트", "데드리프트", "벤치프레스"]
        assert "강남" not in keywords
        assert "PT" not in keywords

    def test_title_patterns(self):
        patterns = analyze_title_patterns(["강남 PT 가격 후기 5가지", "필라테스 어떻게 시작할까?"])

        assert patterns[0] == "숫자 포함"
        assert "질문형" in patterns
        assert "지역명 포함" in patterns

    def test_summarize_empty(self):
        assert summarize([]).to_dict()["avgWordCount"] == 0

    def test_summarize_common_structures(self):
        blogs = [
            BlogAnalysis("a", "u", "c", 1000, BlogStructure(has_intro=True, section_count=3, image_count=4)),
            BlogAnalysis("b", "u", "c", 2000, BlogStructure(has_intro=True, has_faq=True, section_count=5)),
        ]

        summary = summarize(blogs)

        assert summary.avg_word_count == 1500
        assert summary.avg_sections == 4
        assert summary.avg_images == 2
        assert summary.common_structures == ["인트로 섹션", "FAQ 섹션"]

    def test_learning_context_empty_when_no_blogs(self):
        assert build_learning_context(LearningResult("강남 PT", 3, 0)) == ""


class TestTopBlogLearner:
    """learn."""

    @pytest.mark.asyncio
    async def test_learn(self):
        crawled = []

        def handler(request: httpx.Request) -> httpx.Response:
            crawled.append(str(request.url))
            if request.url.path == "/gym/223":
                return httpx.Response(200, text=BLOG_HTML)
            return httpx.Response(404)

        search = MagicMock()
        search.search_blog = AsyncMock(
            return_value={
                "results": [
                    {"title": "강남 PT 가격 후기 5가지", "link": "https://blog.naver.com/gym/223", "bloggername": "짐"},
                    {"title": "외부 블로그", "link": "https://example.tistory.com/1"},
                    {"title": "삭제된 글", "link": "https://blog.naver.com/gym/224"},
                ]
            }
        )
        sleep = AsyncMock()
        learner = TopBlogLearner(
            search,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=sleep,
        )

        result = await learner.learn("강남 PT", count=5)

        search.search_blog.assert_awaited_once_with("강남 PT", display=5, start=1, sort="sim")
        assert crawled == ["https://m.blog.naver.com/gym/223", "https://m.blog.naver.com/gym/224"]
        assert sleep.await_count == 2
        assert result.total_blogs == 3
        assert result.successful_blogs == 1
        blog = result.blogs[0]
        assert blog.bloggername == "짐"
        assert blog.structure.image_count == 2
        assert blog.word_count == len(blog.content)
        assert result.learning_context.startswith("【상위노출 블로그 1개 분석 결과】")
        assert '특히 제목은 "숫자 포함" 스타일로' in result.learning_context

    @pytest.mark.asyncio
    async def test_crawl_network_error_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timeout", request=request)

        learner = TopBlogLearner(
            MagicMock(), http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        assert await learner.crawl("https://blog.naver.com/gym/1") is None

    @pytest.mark.asyncio
    async def test_empty_keyword(self):
        with pytest.raises(ValueError):
            await TopBlogLearner(MagicMock()).learn("  ")

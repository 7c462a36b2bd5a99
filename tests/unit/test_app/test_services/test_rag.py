"""
test_rag.py - 벡터 저장소 테스트

supabase 클라이언트는 MagicMock으로 대체.

검증 포인트:
1. 저장 행 형식 (임베딩, 본문 길이 제한, metadata)
2. 일괄 저장 집계 (누락 항목 실패 처리)
3. 검색 RPC 파라미터 + 실패 → RagError
4. 벡터 수 (키워드 부분 일치), 미설정 시 0
5. 프롬프트용 컨텍스트 포맷
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from src.app.providers.base import EmbeddingError
from src.app.services.rag import (
    MATCH_FUNCTION,
    NOT_CONFIGURED_MESSAGE,
    TABLE_NAME,
    RagError,
    RagService,
    build_rag_context,
)


@pytest.fixture
def embedder() -> MagicMock:
    provider = MagicMock()
    provider.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return provider


@pytest.fixture
def supabase() -> MagicMock:
    return MagicMock()


@pytest.fixture
def unconfigured(monkeypatch) -> RagService:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    return RagService()


class TestStore:
    """store_blog / store_blogs."""

    @pytest.mark.asyncio
    async def test_store_blog_row(self, embedder, supabase, clock, fixed_now):
        rag = RagService(client=supabase, clock=clock)

        result = await rag.store_blog(embedder, "강남 PT", "제목", "본문" * 6000, "https://blog.naver.com/a/1")

        assert result == {"success": True}
        embedded = embedder.embed.await_args.args[0]
        assert embedded.startswith("제목\n\n본문")
        assert len(embedded) == 8000
        supabase.table.assert_called_with(TABLE_NAME)
        row = supabase.table.return_value.insert.call_args.args[0]
        assert row["keyword"] == "강남 PT"
        assert len(row["content"]) == 10_000
        assert row["embedding"] == [0.1, 0.2, 0.3]
        assert row["metadata"] == {
            "source": "naver_blog",
            "crawled_at": fixed_now.isoformat(),
            "word_count": 12_000,
        }

    @pytest.mark.asyncio
    async def test_store_blog_embedding_failure(self, embedder, supabase):
        embedder.embed.side_effect = EmbeddingError("EMBEDDING_FAILED", "임베딩 실패", status_code=500)

        result = await RagService(client=supabase).store_blog(embedder, "k", "t", "c")

        assert result == {"success": False, "error": "[EMBEDDING_FAILED] 임베딩 실패"}
        supabase.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_blog_not_configured(self, embedder, unconfigured):
        result = await unconfigured.store_blog(embedder, "k", "t", "c")

        assert result == {"success": False, "error": NOT_CONFIGURED_MESSAGE}

    @pytest.mark.asyncio
    async def test_store_blogs_counts(self, embedder, supabase):
        insert = supabase.table.return_value.insert.return_value
        insert.execute.side_effect = [MagicMock(), APIError({"message": "duplicate", "code": "23505"})]
        sleep = AsyncMock()

        result = await RagService(client=supabase).store_blogs(
            embedder,
            "강남 PT",
            [
                {"title": "a", "content": "본문 a"},
                {"title": "b", "content": "본문 b"},
                {"title": "", "content": "제목 없음"},
            ],
            sleep=sleep,
        )

        assert result["successCount"] == 1
        assert result["errorCount"] == 2
        assert result["message"] == "1개 저장 완료, 2개 실패"
        assert [r["title"] for r in result["results"]] == ["a", "b"]
        assert result["results"][1]["success"] is False
        assert sleep.await_count == 2


class TestSearch:
    """search_similar / get_vector_count."""

    @pytest.mark.asyncio
    async def test_search_similar_rpc_params(self, embedder, supabase):
        supabase.rpc.return_value.execute.return_value = MagicMock(
            data=[{"id": 1, "title": "a", "similarity": 0.91}]
        )

        results = await RagService(client=supabase).search_similar(
            embedder, "강남 PT 가격", keyword="강남 PT", match_count=3, threshold=0.6
        )

        assert results == [{"id": 1, "title": "a", "similarity": 0.91}]
        supabase.rpc.assert_called_once_with(
            MATCH_FUNCTION,
            {
                "query_embedding": [0.1, 0.2, 0.3],
                "match_threshold": 0.6,
                "match_count": 3,
                "filter_keyword": "강남 PT",
            },
        )

    @pytest.mark.asyncio
    async def test_search_without_keyword_sends_null_filter(self, embedder, supabase):
        supabase.rpc.return_value.execute.return_value = MagicMock(data=None)

        assert await RagService(client=supabase).search_similar(embedder, "q", keyword="") == []
        assert supabase.rpc.call_args.args[1]["filter_keyword"] is None

    @pytest.mark.asyncio
    async def test_search_failure_raises(self, embedder, supabase):
        supabase.rpc.return_value.execute.side_effect = APIError({"message": "function missing"})

        with pytest.raises(RagError) as exc_info:
            await RagService(client=supabase).search_similar(embedder, "q")

        assert exc_info.value.code == "RAG_SEARCH_FAILED"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_search_not_configured(self, embedder, unconfigured):
        with pytest.raises(RagError) as exc_info:
            await unconfigured.search_similar(embedder, "q")

        assert exc_info.value.code == "RAG_NOT_CONFIGURED"
        embedder.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vector_count_with_keyword(self, supabase):
        query = supabase.table.return_value.select.return_value
        query.ilike.return_value.execute.return_value = MagicMock(count=7)

        count = await RagService(client=supabase).get_vector_count("강남")

        assert count == 7
        supabase.table.return_value.select.assert_called_once_with("id", count="exact", head=True)
        query.ilike.assert_called_once_with("keyword", "%강남%")

    @pytest.mark.asyncio
    async def test_vector_count_failure_returns_zero(self, supabase):
        supabase.table.return_value.select.return_value.execute.side_effect = APIError({"message": "x"})

        assert await RagService(client=supabase).get_vector_count() == 0

    @pytest.mark.asyncio
    async def test_vector_count_not_configured(self, unconfigured):
        assert await unconfigured.get_vector_count() == 0


class TestBuildRagContext:
    """프롬프트용 참고 자료."""

    def test_empty(self):
        assert build_rag_context([]) == ""

    def test_format(self):
        context = build_rag_context(
            [
                {"title": "강남 PT 후기", "content": "가" * 2000, "similarity": 0.876},
                {"title": "역삼 헬스", "content": None, "similarity": None},
            ]
        )

        assert "[참고 글 1] (유사도: 87.6%)\n제목: 강남 PT 후기" in context
        assert "가" * 1500 + "..." in context
        assert "가" * 1501 not in context
        assert "[참고 글 2] (유사도: 0.0%)" in context
        assert "\n\n---\n\n" in context
        assert "4. 독자 공감 요소" in context

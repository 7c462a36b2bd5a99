"""
상위 블로그 벡터 저장/검색 (Supabase pgvector).

- 테이블: blog_vectors (keyword, title, content, url, embedding, metadata)
- 검색: RPC match_blog_vectors (코사인 유사도, threshold 이상)
- 임베딩: 요청 키로 만든 provider의 embed() 사용

supabase 클라이언트는 동기 API → asyncio.to_thread로 호출.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.app.providers.base import LLMProvider, ProviderError
from src.core.clock import now_utc

logger = logging.getLogger(__name__)

TABLE_NAME = "blog_vectors"
MATCH_FUNCTION = "match_blog_vectors"

EMBED_MAX_CHARS = 8000
STORE_CONTENT_MAX_CHARS = 10_000
CONTEXT_SNIPPET_CHARS = 1500
DEFAULT_MATCH_THRESHOLD = 0.5
DEFAULT_MATCH_COUNT = 5

NOT_CONFIGURED_MESSAGE = "Supabase가 설정되지 않았습니다."


class RagError(ProviderError):
    """벡터 저장소 에러."""
    pass


def build_rag_context(similar_blogs: list[dict[str, Any]]) -> str:
    """
    유사 블로그 → 프롬프트 참고 자료.

    각 글 본문은 1500자까지, 유사도는 소수 첫째 자리 %.
    """
    if not similar_blogs:
        return ""

    blocks = []
    for index, blog in enumerate(similar_blogs, start=1):
        similarity = float(blog.get("similarity") or 0) * 100
        blocks.append(
            f"[참고 글 {index}] (유사도: {similarity:.1f}%)\n"
            f"제목: {blog.get('title', '')}\n"
            f"내용 요약: {(blog.get('content') or '')[:CONTEXT_SNIPPET_CHARS]}..."
        )
    context = "\n\n---\n\n".join(blocks)

    return f"""
다음은 상위노출된 블로그 글들의 참고 자료입니다. 이 글들의 패턴(제목 구조, 키워드 배치, 문체, 구성)을 분석하여 새로운 글을 작성할 때 참고하세요:

{context}

위 참고 자료의 패턴을 분석하여:
1. 제목 스타일 (키워드 위치, 후킹 포인트)
2. 본문 구성 (서론-본론-결론 패턴)
3. 키워드 배치 빈도
4. 독자 공감 요소
를 반영하여 새로운 글을 작성해주세요.
"""


class RagService:
    """
    블로그 벡터 저장소.

    Usage:
        rag = RagService()
        await rag.store_blog(embedder, keyword="강남 PT", title=..., content=..., url=...)
        results = await rag.search_similar(embedder, "강남 PT 가격")
    """

    def __init__(
        self,
        client: Client | None = None,
        url: str | None = None,
        key: str | None = None,
        clock: Callable[[], Any] = now_utc,
    ):
        self.url = url or os.environ.get("SUPABASE_URL", "")
        self.key = key or os.environ.get("SUPABASE_KEY", "")
        self._client = client
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.url and self.key)

    def _get_client(self) -> Client | None:
        if self._client is None and self.url and self.key:
            self._client = create_client(self.url, self.key)
        return self._client

    async def store_blog(
        self,
        embedder: LLMProvider,
        keyword: str,
        title: str,
        content: str,
        url: str = "",
    ) -> dict[str, Any]:
        """
        제목+본문 임베딩 후 저장.

        Returns:
            {success: True} 또는 {success: False, error}
        """
        client = self._get_client()
        if client is None:
            return {"success": False, "error": NOT_CONFIGURED_MESSAGE}

        try:
            embedding = await embedder.embed(f"{title}\n\n{content}"[:EMBED_MAX_CHARS])
            row = {
                "keyword": keyword,
                "title": title,
                "content": content[:STORE_CONTENT_MAX_CHARS],
                "url": url,
                "embedding": embedding,
                "metadata": {
                    "source": "naver_blog",
                    "crawled_at": self._clock().isoformat(),
                    "word_count": len(content),
                },
            }
            await asyncio.to_thread(lambda: client.table(TABLE_NAME).insert(row).execute())
        except (ProviderError, APIError, httpx.HTTPError) as e:
            logger.error(f"Storing blog vector failed: {title!r} ({e})")
            return {"success": False, "error": str(e)}

        return {"success": True}

    async def store_blogs(
        self,
        embedder: LLMProvider,
        keyword: str,
        blogs: list[dict[str, Any]],
        delay: float = 0.2,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> dict[str, Any]:
        """
        여러 블로그 저장 (임베딩 사이 delay 대기).

        title/content 없는 항목은 실패로 집계만 하고 건너뜀.
        """
        results = []
        success_count = 0
        error_count = 0

        for blog in blogs:
            title = blog.get("title")
            content = blog.get("content")
            if not title or not content:
                error_count += 1
                continue

            result = await self.store_blog(embedder, keyword, title, content, blog.get("url") or "")
            if result["success"]:
                success_count += 1
            else:
                error_count += 1
            results.append({"title": title, **result})

            await sleep(delay)

        return {
            "success": True,
            "message": f"{success_count}개 저장 완료, {error_count}개 실패",
            "successCount": success_count,
            "errorCount": error_count,
            "results": results,
        }

    async def search_similar(
        self,
        embedder: LLMProvider,
        query: str,
        keyword: str | None = None,
        match_count: int = DEFAULT_MATCH_COUNT,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> list[dict[str, Any]]:
        """
        유사 블로그 검색.

        Returns:
            [{id, keyword, title, content, url, similarity}]

        Raises:
            RagError: 미설정 또는 검색 실패
        """
        client = self._get_client()
        if client is None:
            raise RagError("RAG_NOT_CONFIGURED", NOT_CONFIGURED_MESSAGE, status_code=500)

        embedding = await embedder.embed(query)
        params = {
            "query_embedding": embedding,
            "match_threshold": threshold,
            "match_count": match_count,
            "filter_keyword": keyword or None,
        }
        try:
            response = await asyncio.to_thread(lambda: client.rpc(MATCH_FUNCTION, params).execute())
        except (APIError, httpx.HTTPError) as e:
            raise RagError("RAG_SEARCH_FAILED", str(e), status_code=500) from e

        return list(response.data or [])

    async def get_vector_count(self, keyword: str | None = None) -> int:
        """저장된 벡터 수 (keyword 부분 일치). 미설정/실패 시 0."""
        client = self._get_client()
        if client is None:
            return 0

        def count() -> Any:
            query = client.table(TABLE_NAME).select("id", count="exact", head=True)
            if keyword:
                query = query.ilike("keyword", f"%{keyword}%")
            return query.execute()

        try:
            response = await asyncio.to_thread(count)
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"Vector count failed: {e}")
            return 0
        return int(response.count or 0)

"""
RAG Routes: 상위 블로그 벡터 저장/유사 검색.

- POST /api/rag/crawl → 블로그 목록 임베딩 후 저장
- POST /api/rag/search → 유사 블로그 + 프롬프트용 컨텍스트
- GET /api/rag/stats → 저장된 벡터 수

임베딩은 요청의 OpenAI 키로만 (사이트 키 사용 안 함).
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.providers import ProviderError, create_provider
from src.app.providers.base import LLMProvider
from src.app.routes.common import bad_request, get_config, internal_error, provider_error, read_json
from src.app.services.rag import (
    DEFAULT_MATCH_COUNT,
    DEFAULT_MATCH_THRESHOLD,
    RagError,
    build_rag_context,
)

logger = logging.getLogger(__name__)

api_router = APIRouter()

MAX_MATCH_COUNT = 20


def _embedder(request: Request, body: dict[str, Any]) -> LLMProvider:
    api_key = str(body.get("apiKey") or "").strip()
    if not api_key:
        raise bad_request("OpenAI API 키가 필요합니다.")
    return create_provider("openai", api_key=api_key, config=get_config(request))


@api_router.post("/crawl")
async def store_blogs(request: Request) -> dict[str, Any]:
    """
    body: keyword, blogs [{title, content, url}], apiKey

    Returns:
        {success, message, successCount, errorCount, results}
    """
    body = await read_json(request)
    keyword = str(body.get("keyword") or "").strip()
    blogs = body.get("blogs")
    if not keyword or not isinstance(blogs, list):
        raise bad_request("키워드와 블로그 데이터가 필요합니다.")

    embedder = _embedder(request, body)
    try:
        return await request.app.state.rag.store_blogs(embedder, keyword, blogs)
    except Exception as e:
        logger.error(f"RAG crawl error: {e}", exc_info=True)
        raise internal_error("크롤링 저장 중 오류가 발생했습니다.") from e
    finally:
        await embedder.aclose()


@api_router.post("/search")
async def search_blogs(request: Request) -> dict[str, Any]:
    """
    body: query, keyword, matchCount(기본 5), apiKey

    Returns:
        {success, results, ragContext, stats{totalVectors, keywordVectors, matchedCount}}
    """
    body = await read_json(request)
    query = str(body.get("query") or "").strip()
    if not query:
        raise bad_request("검색 쿼리가 필요합니다.")
    keyword = str(body.get("keyword") or "").strip() or None

    rag_config = get_config(request).get("rag", {})
    default_count = rag_config.get("match_count", DEFAULT_MATCH_COUNT)
    try:
        match_count = int(body.get("matchCount") or default_count)
    except (TypeError, ValueError):
        match_count = default_count
    match_count = min(max(match_count, 1), MAX_MATCH_COUNT)

    rag = request.app.state.rag
    embedder = _embedder(request, body)
    try:
        total = await rag.get_vector_count()
        keyword_total = await rag.get_vector_count(keyword) if keyword else total
        results = await rag.search_similar(
            embedder,
            query,
            keyword=keyword,
            match_count=match_count,
            threshold=rag_config.get("threshold", DEFAULT_MATCH_THRESHOLD),
        )
    except RagError as e:
        logger.error(f"RAG search failed: {e}")
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": f"검색 오류: {e.message}", "code": e.code},
        ) from e
    except ProviderError as e:
        logger.error(f"RAG embedding failed: {e.code} {e.message}")
        raise provider_error(e) from e
    except Exception as e:
        logger.error(f"RAG search error: {e}", exc_info=True)
        raise internal_error("검색 중 오류가 발생했습니다.") from e
    finally:
        await embedder.aclose()

    return {
        "success": True,
        "results": results,
        "ragContext": build_rag_context(results),
        "stats": {
            "totalVectors": total,
            "keywordVectors": keyword_total,
            "matchedCount": len(results),
        },
    }


@api_router.get("/stats")
async def vector_stats(request: Request) -> dict[str, Any]:
    total = await request.app.state.rag.get_vector_count()
    return {"success": True, "totalVectors": total}

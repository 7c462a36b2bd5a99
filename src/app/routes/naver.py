"""
Naver Routes: 업체 검색, 블로그 검색, 플레이스 상세.

- POST /api/naver/search → 지역 검색 (리뷰순 5건)
- POST /api/naver/blog-search → 블로그 검색
- POST /api/naver/place-detail → 메뉴/영업시간/휴무 (모바일 검색 HTML)
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.routes.common import bad_request, internal_error, read_json
from src.app.services.naver import NaverAPIError

logger = logging.getLogger(__name__)

api_router = APIRouter()

BLOG_SORTS = ("sim", "date")


def _query(body: dict[str, Any]) -> str:
    query = str(body.get("query") or "").strip()
    if not query:
        raise bad_request("검색어를 입력해주세요")
    return query


def _int_param(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return min(max(number, low), high)


def _naver_http_error(e: NaverAPIError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


@api_router.post("/search")
async def search_places(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    query = _query(body)
    try:
        results = await request.app.state.naver.search_local(query)
    except NaverAPIError as e:
        logger.error(f"Naver local search failed: {e}")
        raise _naver_http_error(e) from e
    except Exception as e:
        logger.error(f"Naver search error: {e}", exc_info=True)
        raise internal_error("검색 중 오류가 발생했습니다") from e
    return {"results": results}


@api_router.post("/blog-search")
async def search_blogs(request: Request) -> dict[str, Any]:
    """
    블로그 검색.

    body: query, display(1~100, 기본 10), start(1~1000, 기본 1), sort(sim|date)
    """
    body = await read_json(request)
    query = _query(body)
    sort = body.get("sort") if body.get("sort") in BLOG_SORTS else "sim"
    try:
        return await request.app.state.naver.search_blog(
            query,
            display=_int_param(body.get("display"), 10, 1, 100),
            start=_int_param(body.get("start"), 1, 1, 1000),
            sort=sort,
        )
    except NaverAPIError as e:
        logger.error(f"Naver blog search failed: {e}")
        raise _naver_http_error(e) from e
    except Exception as e:
        logger.error(f"Naver blog search error: {e}", exc_info=True)
        raise internal_error("블로그 검색 중 오류가 발생했습니다") from e


@api_router.post("/place-detail")
async def place_detail(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    query = _query(body)
    try:
        details = await request.app.state.naver.get_place_detail(query)
    except NaverAPIError as e:
        logger.error(f"Naver place detail failed: {e}")
        raise _naver_http_error(e) from e
    except Exception as e:
        logger.error(f"Naver place detail error: {e}", exc_info=True)
        raise internal_error("상세 정보 조회 중 오류가 발생했습니다") from e

    if not details:
        return {"detail": None, "message": "상세 정보를 찾을 수 없습니다"}
    return {"details": details}

"""
Learning Routes: 인기 검색어 + 상위 블로그 학습.

- GET /api/trending-keywords → Google/Nate/Zum 실시간 검색어 병합
- POST /api/learn-top-blogs → 키워드 상위 블로그 구조 분석 (로그인 필요, 사이트 네이버 키 보호)
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.auth import authenticate_request
from src.app.routes.common import bad_request, internal_error, read_json
from src.app.services.naver import NaverAPIError

logger = logging.getLogger(__name__)

api_router = APIRouter()

DEFAULT_LEARN_COUNT = 5
MAX_LEARN_COUNT = 10


@api_router.get("/trending-keywords")
async def trending_keywords(request: Request) -> dict[str, Any]:
    """소스별 실패는 빈 목록, 전부 실패하면 fallback=True + 기본 키워드."""
    try:
        return await request.app.state.trending.get_trending()
    except Exception as e:
        logger.error(f"Trending keywords error: {e}", exc_info=True)
        raise internal_error("인기 검색어 조회 중 오류가 발생했습니다") from e


@api_router.post("/learn-top-blogs")
async def learn_top_blogs(request: Request) -> dict[str, Any]:
    """
    상위 블로그 학습.

    body: keyword, count(1~10, 기본 5), userId

    Returns:
        LearningResult.to_dict() (learningContext 포함)
    """
    body = await read_json(request)
    await authenticate_request(request, body)

    keyword = str(body.get("keyword") or "").strip()
    if not keyword:
        raise bad_request("키워드를 입력해주세요")

    try:
        count = int(body.get("count") or DEFAULT_LEARN_COUNT)
    except (TypeError, ValueError):
        count = DEFAULT_LEARN_COUNT
    count = min(max(count, 1), MAX_LEARN_COUNT)

    try:
        result = await request.app.state.learner.learn(keyword, count=count)
    except ValueError as e:
        raise bad_request(str(e)) from e
    except NaverAPIError as e:
        logger.error(f"Top blog search failed: {e}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e
    except Exception as e:
        logger.error(f"Learn top blogs error: {e}", exc_info=True)
        raise internal_error("상위 블로그 학습 중 오류가 발생했습니다") from e

    return result.to_dict()

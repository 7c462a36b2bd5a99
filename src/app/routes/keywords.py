"""
Keyword Routes: 키워드 경쟁도 분석 + AI 키워드/제목 추천.

- POST /api/keywords/analyze → 연관 키워드 경쟁도 (로그인, 하루 N회)
- POST /api/keywords/usage → 오늘 분석 사용량
- POST /api/keywords/{provider} → 보조/롱테일 키워드 + 제목 (provider: gemini | openai)

analyze/usage는 {provider}보다 먼저 등록해야 경로가 가려지지 않는다.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.auth import authenticate_request
from src.app.providers import ProviderError, create_provider
from src.app.routes.common import (
    bad_request,
    get_config,
    get_db,
    internal_error,
    policy_error,
    read_json,
    require_provider,
    resolve_api_key,
    usage_rejected,
)
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.keyword_usage import KeywordUsageService
from src.app.services.keywords import KeywordAnalyzer
from src.app.services.naver import NaverAdsClient, NaverAPIError
from src.app.services.prompts import KEYWORD_SYSTEM_PROMPT, build_keyword_prompt
from src.app.services.usage import UsageService, estimate_tokens
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

api_router = APIRouter()

DEFAULT_KEYWORD_MAX_TOKENS = 1024
DEFAULT_PAGE_SIZE = 50


def _ads_client(request: Request, body: dict[str, Any]) -> NaverAdsClient:
    """요청에 검색광고 키가 있으면 그 키로, 없으면 서버 키 클라이언트."""
    if body.get("apiKey") and body.get("secretKey") and body.get("customerId"):
        return NaverAdsClient(
            api_key=str(body["apiKey"]),
            secret_key=str(body["secretKey"]),
            customer_id=str(body["customerId"]),
            http_client=request.app.state.http_client,
        )
    return request.app.state.naver_ads


def _page_param(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def _keyword_max_tokens(config: dict[str, Any]) -> int:
    return (
        config.get("ai", {})
        .get("gemini", {})
        .get("keyword_max_output_tokens", DEFAULT_KEYWORD_MAX_TOKENS)
    )


# =============================================================================
# Competition Analysis
# =============================================================================


@api_router.post("/analyze")
async def analyze_keywords(request: Request) -> dict[str, Any]:
    """
    연관 키워드 경쟁도 분석.

    body: keyword (쉼표/줄바꿈으로 여러 개), offset, limit,
          apiKey/secretKey/customerId (선택, 검색광고 키)
    """
    body = await read_json(request)
    keyword = str(body.get("keyword") or "").strip()
    if not keyword:
        raise bad_request("키워드를 입력해주세요")

    user_id = await authenticate_request(request, body)
    usage = KeywordUsageService(get_db(request)).check_and_increment(user_id)
    if not usage.allowed:
        raise HTTPException(
            status_code=429,
            detail={
                **PolicyRejectError(ErrorCodes.KEYWORD_LIMIT_EXCEEDED).to_dict(),
                "usage": usage.to_dict(),
            },
        )

    naver_config = get_config(request).get("naver", {})
    analyzer = KeywordAnalyzer(
        request.app.state.naver,
        _ads_client(request, body),
        **{
            key: naver_config[key]
            for key in ("document_count_delay", "related_keyword_limit")
            if key in naver_config
        },
    )

    try:
        result = await analyzer.analyze(
            keyword,
            offset=_page_param(body.get("offset"), 0),
            limit=_page_param(body.get("limit"), DEFAULT_PAGE_SIZE) or DEFAULT_PAGE_SIZE,
        )
    except ValueError as e:
        raise bad_request(str(e)) from e
    except NaverAPIError as e:
        logger.error(f"Keyword analysis failed: {e}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e
    except Exception as e:
        logger.error(f"Keyword analysis error: {e}", exc_info=True)
        raise internal_error("키워드 분석 중 오류가 발생했습니다") from e

    ActivityService(get_db(request)).log_activity(
        user_id,
        ActivityType.KEYWORD_SEARCH,
        f"키워드 분석: {keyword}",
        {"keyword": keyword},
    )
    return {**result, "usage": usage.to_dict()}


@api_router.post("/usage")
async def keyword_usage(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    return KeywordUsageService(get_db(request)).get_today(user_id).to_dict()


# =============================================================================
# AI Keyword Suggestions
# =============================================================================


@api_router.post("/{provider}")
async def suggest_keywords(request: Request, provider: str) -> dict[str, Any]:
    """
    메인 키워드 → 보조 키워드, 롱테일 키워드, 제목 5개.

    사이트 키 사용 시 추정 토큰만큼 사용량 차감.

    Returns:
        {subKeywords, tailKeywords, titles}
    """
    require_provider(provider)
    body = await read_json(request)
    main_keyword = str(body.get("mainKeyword") or "").strip()
    if not main_keyword:
        raise bad_request("메인 키워드가 필요합니다")

    prompt = build_keyword_prompt(
        main_keyword,
        category=body.get("category"),
        business_name=body.get("businessName"),
        image_context=body.get("imageContext"),
        image_analysis=body.get("imageAnalysis"),
    )

    api_key, user_id = await resolve_api_key(request, body, provider)
    config = get_config(request)
    if user_id is not None:
        tokens = estimate_tokens(prompt, _keyword_max_tokens(config))
        result = UsageService(get_db(request)).check_and_increment_token_usage(user_id, tokens)
        if not result.allowed:
            raise usage_rejected(result.reason)

    llm = create_provider(provider, api_key=api_key, config=config)
    try:
        data = await llm.complete_json(prompt, system=KEYWORD_SYSTEM_PROMPT)
        return {
            "subKeywords": data.get("subKeywords") or [],
            "tailKeywords": data.get("tailKeywords") or [],
            "titles": data.get("titles") or [],
        }
    except ProviderError as e:
        logger.error(f"Keyword generation failed ({provider}): {e.code} {e.message}")
        status = 429 if e.status_code == 429 else 500
        raise HTTPException(
            status_code=status,
            detail={"error": f"키워드 생성 실패: {e.message}", "code": e.code},
        ) from e
    except PolicyRejectError as e:
        raise policy_error(e) from e
    except Exception as e:
        logger.error(f"Keyword generation error ({provider}): {e}", exc_info=True)
        raise internal_error("키워드 생성 중 오류가 발생했습니다") from e
    finally:
        await llm.aclose()

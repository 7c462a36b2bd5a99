"""
Image Routes: 업로드 사진 분석 + 블로그용 이미지 생성.

- POST /api/images/analyze/{provider} → 사진 1장 분석
    gemini: {analysis} 자유 텍스트
    openai: {analysis, analysisJson?} JSON 스키마 (파싱 실패 시 analysis만)
- POST /api/images/generate/{provider} → 이미지 생성
    useSiteApi=True면 로그인 + 유료 모델 사용량 차감 (무료 모델은 차감 없음)
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.auth import authenticate_request
from src.app.providers import ImageInput, ProviderError, create_provider
from src.app.providers.base import parse_json_object
from src.app.providers.gemini import GEMINI_IMAGE_MODELS
from src.app.routes.common import (
    SITE_KEY_ENV,
    bad_request,
    get_config,
    get_db,
    internal_error,
    provider_error,
    read_json,
    require_provider,
    resolve_api_key,
    site_api_key,
    usage_rejected,
)
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.prompts import build_image_analysis_json_prompt, build_image_analysis_prompt
from src.app.services.usage import UsageService
from src.domain.errors import ErrorCodes
from src.domain.schemas import UsageKind

logger = logging.getLogger(__name__)

api_router = APIRouter()

DEFAULT_IMAGE_MODELS = {
    "gemini": GEMINI_IMAGE_MODELS[0],
    "openai": "gpt-image-1",
}


@api_router.post("/analyze/{provider}")
async def analyze_image(request: Request, provider: str) -> dict[str, Any]:
    """
    사진 분석.

    body: image {mimeType, data}, category, businessInfo, context, apiKey
    """
    require_provider(provider)
    body = await read_json(request)
    raw_image = body.get("image")
    if not isinstance(raw_image, dict) or not raw_image.get("data"):
        raise bad_request("이미지가 필요합니다")
    image = ImageInput.from_dict(raw_image)

    api_key, user_id = await resolve_api_key(request, body, provider)
    if user_id is not None:
        result = UsageService(get_db(request)).check_and_increment_usage(
            user_id, UsageKind.IMAGE_ANALYSIS
        )
        if not result.allowed:
            raise usage_rejected(result.reason)

    business_info = body.get("businessInfo") if isinstance(body.get("businessInfo"), dict) else None
    llm = create_provider(provider, api_key=api_key, config=get_config(request))
    try:
        if provider == "openai":
            prompt = build_image_analysis_json_prompt(business_info, body.get("context"))
            analyzed = await llm.analyze_image(prompt, image)
            response: dict[str, Any] = {"analysis": analyzed.text}
            try:
                response["analysisJson"] = parse_json_object(analyzed.text)
            except ProviderError:
                logger.warning("Image analysis returned non-JSON text")
            return response

        prompt = build_image_analysis_prompt(body.get("category"), business_info, body.get("context"))
        analyzed = await llm.analyze_image(prompt, image)
        return {"analysis": analyzed.text}

    except ProviderError as e:
        logger.error(f"Image analysis failed ({provider}): {e.code} {e.message}")
        raise provider_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Image analysis error ({provider}): {e}", exc_info=True)
        raise internal_error("이미지 분석 중 오류가 발생했습니다") from e
    finally:
        await llm.aclose()


async def _image_api_key(
    request: Request,
    body: dict[str, Any],
    provider: str,
    model: str,
) -> tuple[str, str | None]:
    """
    useSiteApi → (사이트 키, user_id), 아니면 (요청 키, None).

    Raises:
        HTTPException: 인증 실패(401), 사용량 초과(429), 키 없음(400/500)
    """
    if not body.get("useSiteApi"):
        client_key = (body.get("apiKey") or "").strip()
        if not client_key:
            raise bad_request("API 키가 필요합니다")
        return client_key, None

    user_id = await authenticate_request(request, body)
    result = UsageService(get_db(request)).check_and_increment_image_usage(user_id, model)
    if not result.allowed:
        raise usage_rejected(result.reason)

    api_key = site_api_key(provider)
    if not api_key:
        logger.error(f"Site image key missing: {SITE_KEY_ENV[provider][0]}")
        raise HTTPException(
            status_code=500,
            detail={"error": "서버 API 키가 설정되지 않았습니다", "code": ErrorCodes.SERVER_CONFIG_ERROR},
        )
    return api_key, user_id


@api_router.post("/generate/{provider}")
async def generate_image(request: Request, provider: str) -> dict[str, Any]:
    """
    이미지 생성.

    body: prompt, model, size/quality (openai), useSiteApi, apiKey

    Returns:
        {imageUrl, revisedPrompt, model}
    """
    require_provider(provider)
    body = await read_json(request)
    prompt = str(body.get("prompt") or "").strip()
    if not prompt:
        raise bad_request("프롬프트가 필요합니다")
    model = str(body.get("model") or DEFAULT_IMAGE_MODELS[provider])

    api_key, user_id = await _image_api_key(request, body, provider, model)

    llm = create_provider(provider, api_key=api_key, config=get_config(request))
    try:
        options: dict[str, Any] = {}
        if provider == "openai":
            options = {
                "size": body.get("size") or "1024x1024",
                "quality": body.get("quality") or "standard",
            }
        generated = await llm.generate_image(prompt, model, **options)
    except ProviderError as e:
        logger.error(f"Image generation failed ({provider}/{model}): {e.code} {e.message}")
        raise provider_error(e) from e
    except Exception as e:
        logger.error(f"Image generation error ({provider}/{model}): {e}", exc_info=True)
        raise internal_error("이미지 생성 중 오류가 발생했습니다") from e
    finally:
        await llm.aclose()

    if user_id is not None:
        ActivityService(get_db(request)).log_activity(
            user_id,
            ActivityType.IMAGE_GENERATE,
            f"이미지 생성 ({model})",
            {"provider": provider, "model": model},
        )
    return generated.to_dict()

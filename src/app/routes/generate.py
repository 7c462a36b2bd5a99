"""
Generate Routes: 블로그 글 생성/수정.

- POST /api/generate/{provider} → 본문 생성 (provider: gemini | openai)
- POST /api/generate/test/{provider} → API 키 연결 확인 (사용량 차감 없음)

요청 body:
- prompt: 완성된 프롬프트 (state가 없을 때)
- state: 클라이언트 작성 상태 → 서버에서 프롬프트 조립 (lite=True면 간소화 프롬프트)
- originalContent + modifyRequest: 기존 글 수정
- images: [{mimeType, data}]
- messages / ragContext: 이전 대화, 참고 블로그 컨텍스트
- usePostHistory: 내 최근 글 3개를 참고 컨텍스트로 추가
- apiKey: 요청 키 (없으면 사이트 키 + 로그인 + 사용량 차감)

사용량:
- 신규 생성: 월간 블로그 횟수 1 차감 (생성 전 차감, 실패해도 복구 없음)
- 수정: 추정 토큰 차감
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from google.api_core.exceptions import GoogleAPICallError

from src.app.providers import ProviderError, clean_generated_text, create_provider
from src.app.routes.common import (
    bad_request,
    get_config,
    get_db,
    internal_error,
    parse_images,
    policy_error,
    provider_error,
    read_json,
    require_provider,
    resolve_api_key,
    usage_rejected,
)
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.post_validation import validate_generated_content
from src.app.services.posts import PostService
from src.app.services.prompts import build_generation_prompt, build_modify_prompt
from src.app.services.usage import UsageService, estimate_tokens
from src.domain.errors import PolicyRejectError
from src.domain.schemas import UsageKind

logger = logging.getLogger(__name__)

api_router = APIRouter()

DEFAULT_MAX_OUTPUT_TOKENS = 8192

CONNECTION_TEST_PROMPT = "Say hello in Korean in one word"


def _max_output_tokens(config: dict[str, Any], provider: str) -> int:
    ai_config = config.get("ai", {})
    if provider == "openai":
        return ai_config.get("openai", {}).get("max_tokens", DEFAULT_MAX_OUTPUT_TOKENS)
    return ai_config.get("gemini", {}).get("max_output_tokens", DEFAULT_MAX_OUTPUT_TOKENS)


def _build_prompt(body: dict[str, Any]) -> tuple[str, dict[str, Any] | None, bool]:
    """
    body → (prompt, facts, is_modify).

    facts는 state로 조립한 경우만 (생성 후 검증용).
    """
    if body.get("modifyRequest"):
        original = body.get("originalContent")
        if not original:
            raise bad_request("수정할 기존 글이 필요합니다")
        return build_modify_prompt(original, body["modifyRequest"]), None, True

    state = body.get("state")
    if isinstance(state, dict):
        prompt, facts = build_generation_prompt(state, lite=bool(body.get("lite")))
        return prompt, facts.to_dict(), False

    prompt = body.get("prompt")
    if not prompt:
        raise bad_request("프롬프트가 필요합니다")
    return prompt, None, False


def _charge_usage(
    request: Request,
    user_id: str,
    prompt: str,
    is_modify: bool,
    provider: str,
) -> None:
    usage = UsageService(get_db(request))
    if is_modify:
        tokens = estimate_tokens(prompt, _max_output_tokens(get_config(request), provider))
        result = usage.check_and_increment_token_usage(user_id, tokens)
    else:
        result = usage.check_and_increment_usage(user_id, UsageKind.BLOG)
    if not result.allowed:
        raise usage_rejected(result.reason)


def _rag_context(request: Request, body: dict[str, Any], user_id: str | None) -> str | None:
    context = body.get("ragContext") or ""
    history_user = user_id or body.get("userId")
    if body.get("usePostHistory") and history_user:
        try:
            history = PostService(get_db(request)).build_rag_context(history_user)
        except (GoogleAPICallError, PolicyRejectError) as e:
            logger.warning(f"Post history skipped: {e}")
            history = ""
        context = f"{context}\n\n{history}".strip() if history else context
    return context or None


# =============================================================================
# API Routes
# =============================================================================


@api_router.post("/{provider}")
async def generate_blog(request: Request, provider: str) -> dict[str, Any]:
    """
    블로그 본문 생성.

    Returns:
        {content, model, fallbackTriggered, usage?, validation?}
    """
    require_provider(provider)
    body = await read_json(request)
    prompt, facts, is_modify = _build_prompt(body)
    images = parse_images(body.get("images"))

    api_key, user_id = await resolve_api_key(request, body, provider)
    if user_id is not None:
        _charge_usage(request, user_id, prompt, is_modify, provider)

    rag_context = _rag_context(request, body, user_id)
    llm = create_provider(provider, api_key=api_key, config=get_config(request))
    try:
        if provider == "openai":
            result = await llm.generate(
                prompt,
                images=images,
                messages=body.get("messages"),
                rag_context=rag_context,
            )
        else:
            # Gemini는 system 메시지가 없으므로 참고 컨텍스트를 프롬프트 앞에 둔다
            full_prompt = f"{rag_context}\n\n{prompt}" if rag_context else prompt
            result = await llm.generate(full_prompt, images=images)

        content = clean_generated_text(result.text)
        response: dict[str, Any] = {
            "content": content,
            "model": result.model_used,
            "fallbackTriggered": result.fallback_triggered,
        }
        if result.usage:
            response["usage"] = result.usage.to_dict()
        if facts is not None:
            response["validation"] = validate_generated_content(content, facts).to_dict()

        if user_id is not None:
            ActivityService(get_db(request)).log_activity(
                user_id,
                ActivityType.BLOG_GENERATE,
                "블로그 글 수정" if is_modify else "블로그 글 생성",
                {"provider": provider, "model": result.model_used},
            )
        return response

    except ProviderError as e:
        logger.error(f"Generation failed ({provider}): {e.code} {e.message}")
        raise provider_error(e) from e
    except PolicyRejectError as e:
        raise policy_error(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Generate error ({provider}): {e}", exc_info=True)
        raise internal_error("글 생성 중 오류가 발생했습니다") from e
    finally:
        await llm.aclose()


@api_router.post("/test/{provider}")
async def check_connection(request: Request, provider: str) -> dict[str, Any]:
    """
    API 키 연결 확인: 짧은 프롬프트 1회 호출.

    요청 키가 없으면 사이트 키 + 로그인 (사용량 차감 없음).
    제공자 오류는 HTTP 오류 대신 success=False로 응답.

    Returns:
        {success, provider, keyPrefix, model?, response?, error?, code?}
    """
    require_provider(provider)
    body = await read_json(request)
    api_key, _ = await resolve_api_key(request, body, provider)

    result: dict[str, Any] = {
        "provider": provider,
        "keyPrefix": f"{api_key[:6]}...",
    }
    llm = create_provider(provider, api_key=api_key, config=get_config(request))
    try:
        generated = await llm.generate(CONNECTION_TEST_PROMPT)
    except ProviderError as e:
        logger.warning(f"Connection test failed ({provider}): {e.code} {e.message}")
        result.update({"success": False, "error": e.message, "code": e.code})
        return result
    finally:
        await llm.aclose()

    result.update(
        {
            "success": True,
            "model": generated.model_used,
            "response": generated.text.strip()[:100],
        }
    )
    return result

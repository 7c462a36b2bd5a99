"""
라우트 공통: app.state 접근, 에러 → HTTPException 변환, API 키 결정.

라우트에서 잡지 않은 PolicyRejectError / Firestore 오류는 register_error_handlers가
HTTPException과 같은 {"detail": {error, code}} JSON으로 변환.
"""

import json
import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from google.api_core.exceptions import GoogleAPICallError

from src.app.auth import authenticate_request
from src.app.providers.base import ImageInput, ProviderError
from src.app.providers.factory import PROVIDER_NAMES
from src.app.services.teams import TeamService
from src.core.store import get_firestore_client
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

SITE_KEY_ENV = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
}


def get_config(request: Request) -> dict[str, Any]:
    return getattr(request.app.state, "config", None) or {}


def get_db(request: Request) -> Any:
    """Firestore 클라이언트 (첫 요청 시 초기화, 실패하면 None 유지)."""
    state = request.app.state
    if not hasattr(state, "db"):
        state.db = get_firestore_client()
    return state.db


def client_ip(request: Request) -> str:
    """x-forwarded-for 첫 값 > 소켓 주소 > "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


async def read_json(request: Request) -> dict[str, Any]:
    """
    요청 body(JSON 객체).

    Raises:
        HTTPException: 400 JSON 객체가 아닐 때
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=400,
            detail={"error": "잘못된 요청 형식입니다", "code": ErrorCodes.MISSING_PARAMS},
        ) from None
    if not isinstance(body, dict):
        raise HTTPException(
            status_code=400,
            detail={"error": "잘못된 요청 형식입니다", "code": ErrorCodes.MISSING_PARAMS},
        )
    return body


def policy_error(e: PolicyRejectError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"error": e.message, "code": e.code})


def provider_error(e: ProviderError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def bad_request(message: str, code: str = ErrorCodes.MISSING_PARAMS) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": message, "code": code})


def internal_error(message: str) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": message, "code": ErrorCodes.INTERNAL_ERROR})


# =============================================================================
# Exception Handlers
# =============================================================================


async def handle_policy_reject(request: Request, exc: PolicyRejectError) -> JSONResponse:
    logger.warning(f"Unhandled policy reject on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error": exc.message, "code": exc.code}},
    )


async def handle_store_error(request: Request, exc: GoogleAPICallError) -> JSONResponse:
    logger.error(f"Firestore error on {request.url.path}: {exc}", exc_info=True)
    error = PolicyRejectError(ErrorCodes.DATABASE_ERROR)
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": {"error": error.message, "code": error.code}},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PolicyRejectError, handle_policy_reject)
    app.add_exception_handler(GoogleAPICallError, handle_store_error)


def site_api_key(provider: str) -> str | None:
    for env_name in SITE_KEY_ENV.get(provider, ()):
        value = os.environ.get(env_name)
        if value:
            return value
    return None


async def resolve_api_key(
    request: Request,
    body: dict[str, Any],
    provider: str,
) -> tuple[str, str | None]:
    """
    요청 키 > 팀 소유자 키(useTeamKey) > 사이트 키.

    팀 키/사이트 키는 로그인 필수, 사이트 키만 사용량 차감 대상.

    Returns:
        (api_key, user_id) - 요청 키/팀 키 사용 시 user_id는 None

    Raises:
        HTTPException: 사이트 키 미설정(400), 인증 실패(401), 팀 키 없음(403)
    """
    client_key = (body.get("apiKey") or "").strip()
    if client_key:
        return client_key, None

    if body.get("useTeamKey"):
        member_id = await authenticate_request(request, body)
        settings = TeamService(get_db(request)).get_team_owner_api_settings(member_id)
        if settings is None or not settings.api_key or settings.api_provider != provider:
            raise policy_error(PolicyRejectError(ErrorCodes.TEAM_KEY_UNAVAILABLE, provider=provider))
        return settings.api_key, None

    api_key = site_api_key(provider)
    if not api_key:
        env_name = SITE_KEY_ENV.get(provider, ("API_KEY",))[0]
        raise bad_request(f"{env_name} 환경변수가 설정되지 않았습니다", code=ErrorCodes.SERVER_CONFIG_ERROR)

    user_id = await authenticate_request(request, body)
    return api_key, user_id


def require_provider(provider: str) -> str:
    if provider not in PROVIDER_NAMES:
        raise bad_request(f"지원하지 않는 AI 제공자입니다: {provider}")
    return provider


def usage_rejected(reason: str | None, code: str = ErrorCodes.USAGE_LIMIT_EXCEEDED) -> HTTPException:
    """사용량 거절 → 429 (사유 그대로)."""
    error = PolicyRejectError(code, message=reason)
    return HTTPException(status_code=429, detail=error.to_dict())


def parse_images(raw: Any) -> list[ImageInput]:
    if not raw:
        return []
    if not isinstance(raw, list):
        raise bad_request("images는 배열이어야 합니다")
    try:
        return [ImageInput.from_dict(item) for item in raw]
    except (AttributeError, TypeError, ValueError):
        raise bad_request("이미지 형식이 올바르지 않습니다") from None

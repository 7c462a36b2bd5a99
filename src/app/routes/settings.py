"""
Settings Routes: 업체 정보, 프리셋, AI API 키.

모두 로그인 필요 (Bearer 토큰 또는 body userId).

- POST /api/settings/business/save | /business/load → 현재 업체 정보
- POST /api/settings/presets/save → 프리셋 저장 (플랜 한도 초과 시 429)
- POST /api/settings/presets/list → 프리셋 목록 (최신순) + 한도
- POST /api/settings/presets/delete → presetId 단건 삭제
- POST /api/settings/api/save | /api/load → API 제공자/키 (응답에는 키 앞 6자리만)
"""

from typing import Any

from fastapi import APIRouter, Request

from src.app.auth import authenticate_request
from src.app.routes.common import bad_request, get_db, policy_error, read_json
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.settings import SettingsService
from src.app.services.usage import UsageService
from src.domain.constants import ADMIN_USER_ID, PLANS, UNLIMITED
from src.domain.errors import PolicyRejectError

api_router = APIRouter()


async def _session(request: Request) -> tuple[dict[str, Any], str, SettingsService]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    return body, user_id, SettingsService(get_db(request))


def _form(body: dict[str, Any], key: str) -> dict[str, Any]:
    """body[key]가 객체면 그 값, 아니면 body 자체."""
    value = body.get(key)
    return value if isinstance(value, dict) else body


def _preset_limit(request: Request, user_id: str) -> int:
    if user_id == ADMIN_USER_ID:
        return UNLIMITED
    subscription = UsageService(get_db(request)).get_subscription(user_id)
    if subscription is None:
        return UNLIMITED
    return PLANS[subscription.current_plan].preset_limit


# =============================================================================
# Business Info
# =============================================================================


@api_router.post("/business/save")
async def save_business_info(request: Request) -> dict[str, Any]:
    body, user_id, settings = await _session(request)
    try:
        info = settings.save_business_info(user_id, _form(body, "businessInfo"))
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"businessInfo": info.to_dict()}


@api_router.post("/business/load")
async def load_business_info(request: Request) -> dict[str, Any]:
    _, user_id, settings = await _session(request)
    info = settings.load_business_info(user_id)
    return {"businessInfo": info.to_dict() if info else None}


# =============================================================================
# Presets
# =============================================================================


@api_router.post("/presets/save")
async def save_preset(request: Request) -> dict[str, Any]:
    """body: name, preset (업체 정보 필드)"""
    body, user_id, settings = await _session(request)
    try:
        preset = settings.save_preset(user_id, str(body.get("name") or ""), _form(body, "preset"))
    except PolicyRejectError as e:
        raise policy_error(e) from e

    ActivityService(get_db(request)).log_activity(
        user_id,
        ActivityType.PRESET_SAVE,
        f"프리셋 저장: {preset.name}",
        {"presetId": preset.id},
    )
    return {"id": preset.id, "preset": preset.to_dict()}


@api_router.post("/presets/list")
async def list_presets(request: Request) -> dict[str, Any]:
    _, user_id, settings = await _session(request)
    presets = settings.load_presets(user_id)
    return {
        "presets": [preset.to_dict() for preset in presets],
        "count": len(presets),
        "limit": _preset_limit(request, user_id),
    }


@api_router.post("/presets/delete")
async def delete_preset(request: Request) -> dict[str, Any]:
    body, user_id, settings = await _session(request)
    preset_id = str(body.get("presetId") or "").strip()
    if not preset_id:
        raise bad_request("presetId가 필요합니다")
    try:
        settings.delete_preset(user_id, preset_id)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"success": True}


# =============================================================================
# API Settings
# =============================================================================


@api_router.post("/api/save")
async def save_api_settings(request: Request) -> dict[str, Any]:
    """body: apiProvider (gemini | openai), apiKey"""
    body, user_id, settings = await _session(request)
    api_key = str(body.get("apiKey") or "").strip()
    if not api_key:
        raise bad_request("API 키를 입력해주세요")
    try:
        saved = settings.save_api_settings(user_id, str(body.get("apiProvider") or "gemini"), api_key)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"apiSettings": saved.to_public_dict()}


@api_router.post("/api/load")
async def load_api_settings(request: Request) -> dict[str, Any]:
    _, user_id, settings = await _session(request)
    saved = settings.load_api_settings(user_id)
    return {"apiSettings": saved.to_public_dict() if saved else None}

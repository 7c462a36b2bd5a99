"""
Usage Routes: 플랜 사용량 요약 + 활동 기록.

- POST /api/usage/summary → 플랜/사용량/한도 (구독 문서 없으면 FREE 생성)
- POST /api/usage/activity → 최근 활동 (최신순, 최대 30건)
- POST /api/usage/activity/log → 클라이언트 활동 기록 (로그인, 프리셋 저장 등)
"""

from typing import Any

from fastapi import APIRouter, Request

from src.app.auth import authenticate_request
from src.app.routes.common import bad_request, get_db, policy_error, read_json
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.usage import UsageService
from src.domain.errors import ErrorCodes, PolicyRejectError

api_router = APIRouter()

MAX_DESCRIPTION_LENGTH = 200


@api_router.post("/summary")
async def usage_summary(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    summary = UsageService(get_db(request)).get_usage_summary(user_id)
    if summary is None:
        raise policy_error(PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED))
    return summary


@api_router.post("/activity")
async def activity_log(request: Request) -> dict[str, Any]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    return {"activities": ActivityService(get_db(request)).get_activity_log(user_id)}


@api_router.post("/activity/log")
async def log_activity(request: Request) -> dict[str, Any]:
    """body: type (ActivityType 값), description, metadata"""
    body = await read_json(request)
    user_id = await authenticate_request(request, body)

    try:
        activity_type = ActivityType(body.get("type"))
    except ValueError:
        raise bad_request("지원하지 않는 활동 유형입니다") from None

    description = str(body.get("description") or "").strip()[:MAX_DESCRIPTION_LENGTH]
    if not description:
        raise bad_request("활동 설명이 필요합니다")
    metadata = body.get("metadata") if isinstance(body.get("metadata"), dict) else None

    logged = ActivityService(get_db(request)).log_activity(
        user_id, activity_type, description, metadata
    )
    return {"logged": logged}

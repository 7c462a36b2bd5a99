"""
Post Routes: 저장 글 + SEO 발행 스케줄 + 글 검증.

모두 로그인 필요 (Bearer 토큰 또는 body userId).

- POST /api/posts/save → 저장 (postType 필수) → {id}
- POST /api/posts/list → 목록 (postType, limit 선택)
- POST /api/posts/get | /update | /delete → postId 단건
- POST /api/posts/stats → 전체/이번 달/유형별 글 수
- POST /api/posts/schedule → 유형별 마지막 발행/다음 마감
- POST /api/posts/alerts → 발행 알림 (overdue / due_soon / ok)
- POST /api/posts/context → 최근 글 3개 참고 컨텍스트
- POST /api/posts/validate → 글 검증 리포트 (로그인 불필요)
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from src.app.auth import authenticate_request
from src.app.routes.common import bad_request, get_db, policy_error, read_json
from src.app.services.activity import ActivityService, ActivityType
from src.app.services.post_validation import validate_generated_content
from src.app.services.posts import PostService
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import PostType

logger = logging.getLogger(__name__)

api_router = APIRouter()

MAX_LIST_LIMIT = 100


def _post_id(body: dict[str, Any]) -> str:
    post_id = str(body.get("postId") or "").strip()
    if not post_id:
        raise bad_request("postId가 필요합니다")
    return post_id


def _post_type(value: Any) -> PostType | None:
    if value in (None, ""):
        return None
    try:
        return PostType(value)
    except ValueError:
        raise policy_error(PolicyRejectError(ErrorCodes.INVALID_POST_TYPE, post_type=value)) from None


def _not_found(post_id: str) -> HTTPException:
    return policy_error(PolicyRejectError(ErrorCodes.POST_NOT_FOUND, post_id=post_id))


async def _session(request: Request) -> tuple[dict[str, Any], str, PostService]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    return body, user_id, PostService(get_db(request))


# =============================================================================
# Posts
# =============================================================================


@api_router.post("/save")
async def save_post(request: Request) -> dict[str, Any]:
    body, user_id, posts = await _session(request)
    post = body.get("post") if isinstance(body.get("post"), dict) else body
    try:
        post_id = posts.save_post(user_id, post)
    except PolicyRejectError as e:
        raise policy_error(e) from e

    ActivityService(get_db(request)).log_activity(
        user_id,
        ActivityType.SEO_SCHEDULE,
        f"글 저장: {post.get('title') or post.get('mainKeyword') or post_id}",
        {"postId": post_id, "postType": post.get("postType")},
    )
    return {"id": post_id}


@api_router.post("/list")
async def list_posts(request: Request) -> dict[str, Any]:
    body, user_id, posts = await _session(request)
    post_type = _post_type(body.get("postType"))
    try:
        limit = int(body.get("limit") or 0)
    except (TypeError, ValueError):
        limit = 0
    limit = min(max(limit, 0), MAX_LIST_LIMIT)

    items = posts.get_posts(user_id, post_type=post_type, limit=limit or None)
    return {"posts": [post.to_dict() for post in items]}


@api_router.post("/get")
async def get_post(request: Request) -> dict[str, Any]:
    body, user_id, posts = await _session(request)
    post_id = _post_id(body)
    post = posts.get_post(user_id, post_id)
    if post is None:
        raise _not_found(post_id)
    return {"post": post.to_dict()}


@api_router.post("/update")
async def update_post(request: Request) -> dict[str, Any]:
    body, user_id, posts = await _session(request)
    post_id = _post_id(body)
    updates = body.get("updates")
    if not isinstance(updates, dict) or not updates:
        raise bad_request("수정할 내용이 필요합니다")

    if posts.get_post(user_id, post_id) is None:
        raise _not_found(post_id)
    try:
        posts.update_post(user_id, post_id, updates)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"success": True}


@api_router.post("/delete")
async def delete_post(request: Request) -> dict[str, Any]:
    body, user_id, posts = await _session(request)
    post_id = _post_id(body)
    try:
        posts.delete_post(user_id, post_id)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"success": True}


@api_router.post("/stats")
async def post_stats(request: Request) -> dict[str, Any]:
    _, user_id, posts = await _session(request)
    return posts.get_post_stats(user_id)


@api_router.post("/context")
async def post_context(request: Request) -> dict[str, Any]:
    _, user_id, posts = await _session(request)
    return {"ragContext": posts.build_rag_context(user_id)}


# =============================================================================
# SEO Schedule
# =============================================================================


@api_router.post("/schedule")
async def seo_schedule(request: Request) -> dict[str, Any]:
    _, user_id, posts = await _session(request)
    schedule = posts.get_seo_schedule(user_id)
    if schedule is None:
        raise policy_error(PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED))
    return {"schedule": schedule.to_dict()}


@api_router.post("/alerts")
async def seo_alerts(request: Request) -> dict[str, Any]:
    _, user_id, posts = await _session(request)
    return {"alerts": [alert.to_dict() for alert in posts.get_seo_alerts(user_id)]}


# =============================================================================
# Validation
# =============================================================================


@api_router.post("/validate")
async def validate_post(request: Request) -> dict[str, Any]:
    """body: content, facts (선택, 숫자 오염 검사용)"""
    body = await read_json(request)
    content = body.get("content")
    if not isinstance(content, str) or not content.strip():
        raise bad_request("검증할 글이 필요합니다")
    facts = body.get("facts") if isinstance(body.get("facts"), dict) else None
    return validate_generated_content(content, facts).to_dict()

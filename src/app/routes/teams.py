"""
Team Routes: 소유자 API 키 공유 팀.

모두 로그인 필요 (Bearer 토큰 또는 body userId).

소유자:
- POST /api/teams/get → 내 팀 (없으면 null)
- POST /api/teams/members/add → email로 가입 사용자 찾아 추가
- POST /api/teams/members/save → 멤버 목록 전체 교체
- POST /api/teams/members/remove → memberId 제거

멤버:
- POST /api/teams/membership → 소속 팀 + 소유자 API 설정 (키 원문 제외)
- POST /api/teams/leave → ownerId 팀 탈퇴
"""

import logging
from typing import Any

from fastapi import APIRouter, Request

from src.app.auth import authenticate_request
from src.app.routes.common import bad_request, get_db, policy_error, read_json
from src.app.services.teams import TeamService
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import TeamMember, UserProfile

logger = logging.getLogger(__name__)

api_router = APIRouter()


async def _session(request: Request) -> tuple[dict[str, Any], str, TeamService]:
    body = await read_json(request)
    user_id = await authenticate_request(request, body)
    return body, user_id, TeamService(get_db(request))


def _required(body: dict[str, Any], key: str) -> str:
    value = str(body.get(key) or "").strip()
    if not value:
        raise bad_request(f"{key}가 필요합니다")
    return value


def _owner_profile(teams: TeamService, user_id: str, body: dict[str, Any]) -> UserProfile:
    """users/{uid} 프로필, 없으면 body의 ownerEmail/ownerName."""
    profile = teams.get_user_profile(user_id)
    if profile is not None:
        return profile
    return UserProfile(
        uid=user_id,
        email=str(body.get("ownerEmail") or ""),
        display_name=body.get("ownerName") or None,
    )


def _parse_members(raw: Any) -> list[TeamMember]:
    if not isinstance(raw, list):
        raise bad_request("members는 배열이어야 합니다")
    try:
        return [TeamMember.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError, AttributeError):
        raise bad_request("멤버 형식이 올바르지 않습니다") from None


# =============================================================================
# Owner
# =============================================================================


@api_router.post("/get")
async def get_team(request: Request) -> dict[str, Any]:
    _, user_id, teams = await _session(request)
    team = teams.get_team(user_id)
    return {"team": team.to_dict() if team else None}


@api_router.post("/members/add")
async def add_member(request: Request) -> dict[str, Any]:
    """body: email (추가할 사용자)"""
    body, user_id, teams = await _session(request)
    email = _required(body, "email")

    user = teams.find_user_by_email(email)
    if user is None:
        raise policy_error(PolicyRejectError(ErrorCodes.USER_NOT_FOUND, email=email))

    try:
        member = teams.add_team_member(_owner_profile(teams, user_id, body), user)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"member": member.to_dict()}


@api_router.post("/members/save")
async def save_members(request: Request) -> dict[str, Any]:
    """body: members [{uid, email, displayName, photoURL, status}]"""
    body, user_id, teams = await _session(request)
    members = _parse_members(body.get("members"))
    try:
        team = teams.save_team(_owner_profile(teams, user_id, body), members)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"team": team.to_dict()}


@api_router.post("/members/remove")
async def remove_member(request: Request) -> dict[str, Any]:
    body, user_id, teams = await _session(request)
    member_id = _required(body, "memberId")
    try:
        teams.remove_team_member(user_id, member_id)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    return {"success": True}


# =============================================================================
# Member
# =============================================================================


@api_router.post("/membership")
async def my_membership(request: Request) -> dict[str, Any]:
    _, user_id, teams = await _session(request)
    membership = teams.get_my_team_membership(user_id)
    if membership is None:
        return {"membership": None, "ownerApiSettings": None}

    settings = teams.get_team_owner_api_settings(user_id)
    return {
        "membership": membership.to_dict(),
        "ownerApiSettings": settings.to_public_dict() if settings else None,
    }


@api_router.post("/leave")
async def leave_team(request: Request) -> dict[str, Any]:
    body, user_id, teams = await _session(request)
    owner_id = _required(body, "ownerId")
    try:
        teams.leave_team(user_id, owner_id)
    except PolicyRejectError as e:
        raise policy_error(e) from e
    logger.info(f"Left team: user={user_id}, owner={owner_id}")
    return {"success": True}

"""
팀: 소유자의 AI API 키를 멤버가 함께 쓰는 구조.

Firestore:
- teams/{ownerId}: 소유자 정보 + members 배열
- users/{memberUid}/teamMembership/{ownerId}: 멤버 쪽 소속 기록
- users/{uid}: 이메일 검색 대상 프로필

규칙:
- 팀 문서와 멤버십 문서는 항상 함께 쓰고 지움
- 멤버는 한 팀에만 속한다고 보고 첫 멤버십을 사용
- 소유자 API 키는 active 상태 멤버에게만 제공
- DB 미초기화: 쓰기는 PolicyRejectError, 조회는 None
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from google.cloud.firestore_v1.base_query import FieldFilter

from src.app.services.settings import SettingsService
from src.core.clock import now_utc
from src.core.store import collection, document
from src.domain.constants import TEAM_DOC, TEAM_MEMBERSHIP_COLLECTION, USERS_COLLECTION
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    ApiSettings,
    Team,
    TeamMember,
    TeamMemberStatus,
    TeamMembership,
    UserProfile,
)

logger = logging.getLogger(__name__)


class TeamService:
    """
    팀 구성 + 멤버십.

    Usage:
        teams = TeamService(db)
        member = teams.find_user_by_email("coach@example.com")
        teams.add_team_member(owner_profile, member)
        settings = teams.get_team_owner_api_settings(member.uid)
    """

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    # =========================================================================
    # Team (소유자)
    # =========================================================================

    def get_team(self, owner_id: str) -> Team | None:
        if self.db is None:
            return None
        snapshot = self._team_ref(owner_id).get()
        if not snapshot.exists:
            return None
        return Team.from_dict({"ownerId": owner_id, **(snapshot.to_dict() or {})})

    def save_team(self, owner: UserProfile, members: list[TeamMember]) -> Team:
        """
        멤버 목록 전체 교체.

        기존 멤버의 addedAt, 팀 createdAt은 유지.
        목록에서 빠진 멤버의 멤버십은 삭제.
        """
        self._require_db()
        now = self._clock()
        existing = self.get_team(owner.uid)
        previous = {member.uid: member for member in existing.members} if existing else {}

        for member in members:
            if member.uid == owner.uid:
                raise PolicyRejectError(ErrorCodes.INVALID_TEAM_MEMBER, uid=member.uid)
            kept = previous.get(member.uid)
            member.added_at = kept.added_at if kept else now

        team = Team(
            owner_id=owner.uid,
            owner_email=owner.email,
            owner_name=owner.display_name,
            members=members,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._team_ref(owner.uid).set(team.to_dict())

        for member in members:
            self._write_membership(owner, member.uid, now)
        current = {member.uid for member in members}
        for uid in previous.keys() - current:
            self._membership_ref(uid, owner.uid).delete()

        logger.info(f"Team saved: owner={owner.uid}, members={len(members)}")
        return team

    def add_team_member(self, owner: UserProfile, user: UserProfile) -> TeamMember:
        """
        멤버 1명 추가 (active 상태). 팀 문서가 없으면 생성.

        Raises:
            PolicyRejectError: DB 미초기화 / 자기 자신 / 이미 추가된 멤버
        """
        self._require_db()
        if user.uid == owner.uid:
            raise PolicyRejectError(ErrorCodes.INVALID_TEAM_MEMBER, uid=user.uid)

        now = self._clock()
        team = self.get_team(owner.uid) or Team(
            owner_id=owner.uid,
            owner_email=owner.email,
            owner_name=owner.display_name,
            created_at=now,
        )
        if team.find_member(user.uid) is not None:
            raise PolicyRejectError(ErrorCodes.TEAM_MEMBER_EXISTS, uid=user.uid)

        member = TeamMember(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
            status=TeamMemberStatus.ACTIVE,
            added_at=now,
        )
        team.owner_email = owner.email or team.owner_email
        team.owner_name = owner.display_name or team.owner_name
        team.members.append(member)
        team.updated_at = now
        self._team_ref(owner.uid).set(team.to_dict())
        self._write_membership(owner, user.uid, now)

        logger.info(f"Team member added: owner={owner.uid}, member={user.uid}")
        return member

    def remove_team_member(self, owner_id: str, member_id: str) -> None:
        """멤버 제거 + 멤버십 삭제. 팀이 없으면 아무것도 하지 않음."""
        self._require_db()
        team = self.get_team(owner_id)
        if team is None:
            return

        team.members = [member for member in team.members if member.uid != member_id]
        team.updated_at = self._clock()
        self._team_ref(owner_id).set(team.to_dict())
        self._membership_ref(member_id, owner_id).delete()
        logger.info(f"Team member removed: owner={owner_id}, member={member_id}")

    # =========================================================================
    # Membership (멤버)
    # =========================================================================

    def get_my_team_membership(self, user_id: str) -> TeamMembership | None:
        if self.db is None:
            return None
        snapshots = list(
            collection(self.db, TEAM_MEMBERSHIP_COLLECTION.format(uid=user_id)).limit(1).stream()
        )
        if not snapshots:
            return None
        return TeamMembership.from_dict({"ownerId": snapshots[0].id, **(snapshots[0].to_dict() or {})})

    def leave_team(self, user_id: str, owner_id: str) -> None:
        """
        멤버 본인 탈퇴.

        Raises:
            PolicyRejectError: DB 미초기화 / 해당 팀 멤버가 아님
        """
        self._require_db()
        team = self.get_team(owner_id)
        if team is None or team.find_member(user_id) is None:
            raise PolicyRejectError(ErrorCodes.TEAM_MEMBER_NOT_FOUND, owner_id=owner_id)
        self.remove_team_member(owner_id, user_id)

    def get_team_owner_api_settings(self, user_id: str) -> ApiSettings | None:
        """
        소속 팀 소유자의 API 설정.

        멤버십이 없거나, 팀에서 빠졌거나, active가 아니면 None.
        """
        membership = self.get_my_team_membership(user_id)
        if membership is None:
            return None

        team = self.get_team(membership.owner_id)
        member = team.find_member(user_id) if team else None
        if member is None or not member.is_active:
            logger.warning(f"Team key denied: user={user_id}, owner={membership.owner_id}")
            return None

        return SettingsService(self.db, self._clock).load_api_settings(membership.owner_id)

    # =========================================================================
    # Users
    # =========================================================================

    def find_user_by_email(self, email: str) -> UserProfile | None:
        email = (email or "").strip()
        if self.db is None or not email:
            return None
        query = collection(self.db, USERS_COLLECTION).where(filter=FieldFilter("email", "==", email))
        for snap in query.limit(1).stream():
            return _profile(snap.id, snap.to_dict() or {})
        return None

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        if self.db is None:
            return None
        snapshot = document(self.db, f"{USERS_COLLECTION}/{user_id}").get()
        if not snapshot.exists:
            return None
        return _profile(user_id, snapshot.to_dict() or {})

    # =========================================================================
    # Internal
    # =========================================================================

    def _require_db(self) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return self.db

    def _team_ref(self, owner_id: str) -> Any:
        return document(self._require_db(), TEAM_DOC.format(owner=owner_id))

    def _membership_ref(self, member_id: str, owner_id: str) -> Any:
        path = f"{TEAM_MEMBERSHIP_COLLECTION.format(uid=member_id)}/{owner_id}"
        return document(self._require_db(), path)

    def _write_membership(self, owner: UserProfile, member_id: str, joined_at: datetime) -> None:
        membership = TeamMembership(
            owner_id=owner.uid,
            owner_email=owner.email,
            owner_name=owner.display_name,
            joined_at=joined_at,
        )
        self._membership_ref(member_id, owner.uid).set(membership.to_dict())


def _profile(uid: str, data: dict[str, Any]) -> UserProfile:
    return UserProfile(
        uid=uid,
        email=data.get("email", ""),
        display_name=data.get("displayName") or None,
        photo_url=data.get("photoURL") or None,
    )

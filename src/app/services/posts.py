"""
저장 글 + SEO 발행 스케줄.

Firestore:
- users/{uid}/posts/{postId}
- users/{uid}/seoSchedule/current

규칙:
- 글 저장 시 해당 유형의 스케줄 갱신 (lastPublished=now, nextDue=now+주기)
- 남은 일수는 KST 날짜 기준 (시각 무시)
- DB 미초기화: 쓰기는 PolicyRejectError, 조회는 None/빈 값
"""

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.clock import now_utc, start_of_day, to_datetime
from src.core.ids import generate_post_id
from src.core.store import collection, document
from src.domain.constants import (
    DUE_SOON_DAYS,
    POST_TYPE_INFO,
    POSTS_COLLECTION,
    RECENT_POST_SNIPPET_CHARS,
    RECENT_POSTS_FOR_CONTEXT,
    SEO_SCHEDULE_DOC,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    AlertStatus,
    PostType,
    SavedPost,
    SeoAlert,
    SeoSchedule,
    SeoScheduleItem,
)

logger = logging.getLogger(__name__)

# 저장/수정 시 허용하는 필드 (camelCase)
POST_FIELDS = (
    "title",
    "content",
    "category",
    "postType",
    "searchIntent",
    "mainKeyword",
    "businessName",
    "imagePrompts",
)


def calculate_alert_status(days_remaining: int) -> AlertStatus:
    if days_remaining < 0:
        return AlertStatus.OVERDUE
    if days_remaining <= DUE_SOON_DAYS:
        return AlertStatus.DUE_SOON
    return AlertStatus.OK


def calculate_next_due(last_published: datetime | None, cycle_days: int, now: datetime) -> datetime:
    """다음 발행일. 발행 이력이 없으면 오늘이 마감."""
    if last_published is None:
        return now
    return last_published + timedelta(days=cycle_days)


def calculate_days_remaining(next_due: datetime, now: datetime) -> int:
    """마감일까지 남은 일수 (KST 자정 기준, 지났으면 음수)."""
    diff = start_of_day(next_due) - start_of_day(now)
    return math.ceil(diff.total_seconds() / 86400)


def _cycle_days(post_type: PostType) -> int:
    return int(POST_TYPE_INFO[post_type]["cycle_days"])


def _parse_post_type(value: Any) -> PostType:
    try:
        return PostType(value)
    except ValueError as e:
        raise PolicyRejectError(ErrorCodes.INVALID_POST_TYPE, post_type=value) from e


class PostService:
    """
    저장 글 CRUD + SEO 스케줄.

    Usage:
        posts = PostService(db)
        post_id = posts.save_post(uid, {"title": ..., "content": ..., "postType": "equipment"})
        alerts = posts.get_seo_alerts(uid)
    """

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    # =========================================================================
    # Posts
    # =========================================================================

    def save_post(self, user_id: str, data: dict[str, Any]) -> str:
        """
        글 저장 후 스케줄 갱신.

        Raises:
            PolicyRejectError: DB 미초기화 / 잘못된 postType
        """
        post_type = _parse_post_type(data.get("postType"))
        post_id = generate_post_id()
        now = self._clock()

        fields = {key: data[key] for key in POST_FIELDS if key in data}
        self._post_ref(user_id, post_id).set(
            {**fields, "postType": post_type.value, "id": post_id, "createdAt": now, "updatedAt": now}
        )
        logger.info(f"Post saved: user={user_id}, post={post_id}, type={post_type.value}")

        self.update_seo_schedule(user_id, post_type)
        return post_id

    def get_post(self, user_id: str, post_id: str) -> SavedPost | None:
        if self.db is None:
            return None
        snapshot = self._post_ref(user_id, post_id).get()
        if not snapshot.exists:
            return None
        return SavedPost.from_dict({**(snapshot.to_dict() or {}), "id": snapshot.id})

    def get_posts(
        self,
        user_id: str,
        post_type: PostType | None = None,
        limit: int | None = None,
    ) -> list[SavedPost]:
        """글 목록 (최신순). post_type/limit 선택."""
        if self.db is None:
            return []

        query = collection(self.db, POSTS_COLLECTION.format(uid=user_id))
        if post_type is not None:
            query = query.where(filter=FieldFilter("postType", "==", PostType(post_type).value))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)

        return [
            SavedPost.from_dict({**(snap.to_dict() or {}), "id": snap.id})
            for snap in query.stream()
        ]

    def get_recent_posts(self, user_id: str, count: int = RECENT_POSTS_FOR_CONTEXT) -> list[SavedPost]:
        return self.get_posts(user_id, limit=count)

    def update_post(self, user_id: str, post_id: str, updates: dict[str, Any]) -> None:
        """
        허용 필드만 병합 저장.

        Raises:
            PolicyRejectError: DB 미초기화 / 잘못된 postType
        """
        fields = {key: updates[key] for key in POST_FIELDS if key in updates}
        if "postType" in fields:
            fields["postType"] = _parse_post_type(fields["postType"]).value
        self._post_ref(user_id, post_id).set({**fields, "updatedAt": self._clock()}, merge=True)

    def delete_post(self, user_id: str, post_id: str) -> None:
        self._post_ref(user_id, post_id).delete()
        logger.info(f"Post deleted: user={user_id}, post={post_id}")

    def get_post_stats(self, user_id: str) -> dict[str, Any]:
        """전체/이번 달 글 수 + 유형별 글 수 (이번 달은 KST 1일 00:00부터)."""
        by_type = {post_type.value: 0 for post_type in PostType}
        posts = self.get_posts(user_id)

        month_start = start_of_day(self._clock()).replace(day=1)
        this_month = 0
        for post in posts:
            by_type[post.post_type.value] += 1
            created = to_datetime(post.created_at)
            if created is not None and created >= month_start:
                this_month += 1

        return {
            "totalPosts": len(posts),
            "thisMonthPosts": this_month,
            "postsByType": by_type,
        }

    def build_rag_context(self, user_id: str) -> str:
        """최근 글 3개 앞부분(500자) → 문체 참고 컨텍스트. 글이 없으면 빈 문자열."""
        posts = self.get_recent_posts(user_id)
        if not posts:
            return ""

        blocks = []
        for index, post in enumerate(posts, start=1):
            type_name = POST_TYPE_INFO[post.post_type]["name"]
            blocks.append(
                f"[참고 글 {index}] - {post.title or post.main_keyword}\n"
                f"카테고리: {post.category} | 글 유형: {type_name}\n"
                "---\n"
                f"{post.content[:RECENT_POST_SNIPPET_CHARS]}...\n"
                "---"
            )

        return (
            "## 이전에 작성한 글 참고 (스타일 일관성 유지)\n\n"
            + "\n\n".join(blocks)
            + "\n\n위 글들의 어조와 스타일을 참고하여 일관성 있게 작성해주세요."
        )

    # =========================================================================
    # SEO Schedule
    # =========================================================================

    def get_seo_schedule(self, user_id: str) -> SeoSchedule | None:
        """스케줄 조회. 문서가 없으면 빈 스케줄."""
        if self.db is None:
            return None
        snapshot = self._schedule_ref(user_id).get()
        if not snapshot.exists:
            return SeoSchedule()

        schedule = SeoSchedule.from_dict(snapshot.to_dict() or {})
        for item in schedule.items.values():
            item.last_published = to_datetime(item.last_published)
            item.next_due = to_datetime(item.next_due)
        return schedule

    def update_seo_schedule(self, user_id: str, post_type: PostType) -> None:
        """해당 유형 발행 기록: lastPublished=now, nextDue=now+주기."""
        post_type = PostType(post_type)
        now = self._clock()
        item = SeoScheduleItem(
            last_published=now,
            next_due=now + timedelta(days=_cycle_days(post_type)),
        )
        self._schedule_ref(user_id).set(
            {post_type.value: item.to_dict(), "updatedAt": now}, merge=True
        )

    def get_seo_alerts(self, user_id: str) -> list[SeoAlert]:
        """유형별 발행 알림 (마감 임박 순)."""
        schedule = self.get_seo_schedule(user_id)
        if schedule is None:
            return []

        now = self._clock()
        alerts = []
        for post_type, item in schedule.items.items():
            next_due = item.next_due or calculate_next_due(
                item.last_published, _cycle_days(post_type), now
            )
            days = calculate_days_remaining(next_due, now)
            alerts.append(
                SeoAlert(
                    post_type=post_type,
                    status=calculate_alert_status(days),
                    days_remaining=days,
                    last_published=item.last_published,
                )
            )

        alerts.sort(key=lambda alert: alert.days_remaining)
        return alerts

    # =========================================================================
    # Internal
    # =========================================================================

    def _require_db(self) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return self.db

    def _post_ref(self, user_id: str, post_id: str) -> Any:
        return document(self._require_db(), f"{POSTS_COLLECTION.format(uid=user_id)}/{post_id}")

    def _schedule_ref(self, user_id: str) -> Any:
        return document(self._require_db(), SEO_SCHEDULE_DOC.format(uid=user_id))

"""
사용자 활동 로그.

Firestore: users/{uid}/activity/log  →  {records: [...], updatedAt}
최근 30개만 유지. 관리자는 기록하지 않음.
기록 실패는 로그만 남기고 요청은 계속 (부가 기능).
"""

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from google.api_core.exceptions import GoogleAPICallError

from src.core.clock import now_utc, to_datetime
from src.core.store import document
from src.domain.constants import ACTIVITY_LOG_DOC, ACTIVITY_LOG_MAX_ENTRIES, ADMIN_USER_ID

logger = logging.getLogger(__name__)


class ActivityType(str, Enum):
    LOGIN = "login"
    KEYWORD_SEARCH = "keyword_search"
    BLOG_GENERATE = "blog_generate"
    IMAGE_GENERATE = "image_generate"
    PRESET_SAVE = "preset_save"
    PLAN_CHANGE = "plan_change"
    PAYMENT = "payment"
    SEO_SCHEDULE = "seo_schedule"


ACTIVITY_LABELS: dict[ActivityType, str] = {
    ActivityType.LOGIN: "로그인",
    ActivityType.KEYWORD_SEARCH: "키워드 검색",
    ActivityType.BLOG_GENERATE: "블로그 생성",
    ActivityType.IMAGE_GENERATE: "이미지 생성",
    ActivityType.PRESET_SAVE: "프리셋 저장",
    ActivityType.PLAN_CHANGE: "요금제 변경",
    ActivityType.PAYMENT: "결제",
    ActivityType.SEO_SCHEDULE: "SEO 스케줄",
}


class ActivityService:
    """활동 기록 (append-only, 최근 N개)."""

    def __init__(
        self,
        db: Any,
        clock: Callable[[], datetime] = now_utc,
        max_entries: int = ACTIVITY_LOG_MAX_ENTRIES,
    ):
        self.db = db
        self._clock = clock
        self.max_entries = max_entries

    def log_activity(
        self,
        user_id: str,
        activity_type: ActivityType | str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        활동 1건 추가.

        Returns:
            기록 여부 (DB 없음/관리자/실패 시 False)
        """
        if self.db is None or not user_id or user_id == ADMIN_USER_ID:
            return False

        activity_type = ActivityType(activity_type)
        now = self._clock()
        record = {
            "type": activity_type.value,
            "description": description,
            "timestamp": now,
            "metadata": metadata or {},
        }

        ref = self._log_ref(user_id)
        try:
            snapshot = ref.get()
            records = list((snapshot.to_dict() or {}).get("records") or []) if snapshot.exists else []
            records.append(record)
            ref.set({"records": records[-self.max_entries:], "updatedAt": now})
        except GoogleAPICallError as e:
            logger.error(f"Failed to log activity: user={user_id}, type={activity_type.value} ({e})")
            return False
        return True

    def get_activity_log(self, user_id: str) -> list[dict[str, Any]]:
        """활동 기록 (최신순)."""
        if self.db is None or not user_id:
            return []

        snapshot = self._log_ref(user_id).get()
        if not snapshot.exists:
            return []

        records = (snapshot.to_dict() or {}).get("records") or []
        return [
            {
                "type": record.get("type"),
                "description": record.get("description"),
                "timestamp": to_datetime(record.get("timestamp")),
                "metadata": record.get("metadata") or {},
            }
            for record in reversed(records)
        ]

    def _log_ref(self, user_id: str) -> Any:
        return document(self.db, ACTIVITY_LOG_DOC.format(uid=user_id))

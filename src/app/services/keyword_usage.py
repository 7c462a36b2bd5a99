"""
키워드 분석 일일 사용량.

Firestore: keyword_usage/{uid}_{YYYY-MM-DD} (KST 날짜)
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from src.core.clock import now_utc, today_string
from src.core.store import document
from src.domain.constants import (
    ADMIN_KEYWORD_LIMIT,
    ADMIN_USER_ID,
    KEYWORD_DAILY_LIMIT,
    KEYWORD_USAGE_COLLECTION,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import KeywordUsageResult

logger = logging.getLogger(__name__)


class KeywordUsageService:
    """키워드 분석 횟수 (하루 KEYWORD_DAILY_LIMIT회)."""

    def __init__(
        self,
        db: Any,
        daily_limit: int = KEYWORD_DAILY_LIMIT,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.daily_limit = daily_limit
        self._clock = clock

    def check_and_increment(self, user_id: str) -> KeywordUsageResult:
        """
        오늘 사용량 체크 후 1 증가.

        Raises:
            PolicyRejectError: DB 미초기화
        """
        if user_id == ADMIN_USER_ID:
            return KeywordUsageResult(
                allowed=True, remaining=ADMIN_KEYWORD_LIMIT, limit=ADMIN_KEYWORD_LIMIT
            )

        now = self._clock()
        date = today_string(now)
        ref = self._usage_ref(user_id, date)
        snapshot = ref.get()

        if not snapshot.exists:
            ref.set({"userId": user_id, "date": date, "count": 1, "lastUsed": now})
            return KeywordUsageResult(
                allowed=True,
                remaining=self.daily_limit - 1,
                limit=self.daily_limit,
                used=1,
            )

        count = int((snapshot.to_dict() or {}).get("count") or 0)
        if count >= self.daily_limit:
            logger.warning(f"Keyword usage limit reached: user={user_id}, date={date}")
            return KeywordUsageResult(
                allowed=False, remaining=0, limit=self.daily_limit, used=count
            )

        ref.update({"count": count + 1, "lastUsed": now})
        return KeywordUsageResult(
            allowed=True,
            remaining=self.daily_limit - count - 1,
            limit=self.daily_limit,
            used=count + 1,
        )

    def get_today(self, user_id: str) -> KeywordUsageResult:
        """오늘 사용량 조회 (증가 없음)."""
        if user_id == ADMIN_USER_ID:
            return KeywordUsageResult(
                allowed=True, remaining=ADMIN_KEYWORD_LIMIT, limit=ADMIN_KEYWORD_LIMIT
            )

        snapshot = self._usage_ref(user_id, today_string(self._clock())).get()
        count = int((snapshot.to_dict() or {}).get("count") or 0) if snapshot.exists else 0
        remaining = max(0, self.daily_limit - count)
        return KeywordUsageResult(
            allowed=remaining > 0, remaining=remaining, limit=self.daily_limit, used=count
        )

    def _usage_ref(self, user_id: str, date: str) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return document(self.db, f"{KEYWORD_USAGE_COLLECTION}/{user_id}_{date}")

"""
요청 가드: IP별 요청 빈도 제한 + 결제 멱등성.

규칙:
- 프로세스 메모리 기반 (멀티 인스턴스 간 공유 안 됨)
- 만료 시각 기반 정리 → 타이머 스레드 없음
- 모든 상태 변경은 락 안에서 수행
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# =============================================================================
# Rate Limiter
# =============================================================================


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    고정 윈도우 요청 빈도 제한.

    Usage:
        limiter = RateLimiter(max_requests=10, window_seconds=60)
        if not limiter.check(client_ip):
            raise PolicyRejectError("RATE_LIMITED")
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """
        요청 1건 기록 후 허용 여부 반환.

        Returns:
            True: 허용, False: 윈도우 내 한도 초과
        """
        now = self._clock()
        with self._lock:
            self._purge(now)
            window = self._windows.get(key)

            if window is None:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_requests:
                logger.warning(f"Rate limit exceeded: key={key}, count={window.count}")
                return False

            window.count += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _purge(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]


# =============================================================================
# Idempotency Guard
# =============================================================================


class IdempotencyGuard:
    """
    중복 요청 차단.

    acquire → 처리 → release 순서로 사용.
    release 후 release_after 초 동안은 같은 키를 계속 차단한다
    (결제창 새로고침으로 인한 연속 승인 요청 방지).
    """

    def __init__(
        self,
        release_after: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.release_after = release_after
        self._clock = clock
        # key → 만료 시각 (None = 처리 중)
        self._keys: dict[str, float | None] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str) -> bool:
        """
        키 점유 시도.

        Returns:
            True: 새 요청, False: 처리 중이거나 방금 처리된 중복 요청
        """
        now = self._clock()
        with self._lock:
            self._purge(now)
            if key in self._keys:
                logger.warning(f"Duplicate request blocked: {key}")
                return False
            self._keys[key] = None
            return True

    def release(self, key: str) -> None:
        """처리 완료. release_after 초 후 키 만료."""
        with self._lock:
            if key in self._keys:
                self._keys[key] = self._clock() + self.release_after

    def is_active(self, key: str) -> bool:
        with self._lock:
            self._purge(self._clock())
            return key in self._keys

    def reset(self) -> None:
        with self._lock:
            self._keys.clear()

    def _purge(self, now: float) -> None:
        expired = [
            k for k, expires_at in self._keys.items()
            if expires_at is not None and expires_at <= now
        ]
        for k in expired:
            del self._keys[k]

"""
재시도 로직 유틸리티.

- retry_with_exponential_backoff: 일시적 네트워크/서버 오류 (OpenAI SDK 호출)
- retry_with_linear_backoff: 429 전용 고정 횟수 재시도 (attempt * step_delay 대기)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableError(Exception):
    """재시도 가능한 에러 (429, quota, rate)."""

    pass


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 비동기 함수
        max_retries: 최대 재시도 횟수 (총 시도 = max_retries + 1)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        *args: func에 전달할 위치 인자
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info(
                    f"Retry succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except exceptions as e:
            if attempt == max_retries:
                logger.error(
                    f"All {max_retries + 1} attempts failed. Last error: {e}"
                )
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)

    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)


async def retry_with_linear_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    step_delay: float = 3.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    고정 횟수 + 선형 백오프 재시도.

    - 1차 시도는 즉시, n번째 재시도 전 n * step_delay 초 대기
    - RetryableError만 재시도, 그 외 예외는 즉시 전파
    - 모든 시도 실패 시 마지막 RetryableError 전파

    Args:
        func: 인자 없는 비동기 함수 (시도 1회)
        max_attempts: 총 시도 횟수
        step_delay: 대기 단위(초)
        sleep: 대기 함수 (테스트에서 교체)

    Returns:
        func의 반환값
    """
    last_error: RetryableError | None = None

    for attempt in range(max_attempts):
        if attempt > 0:
            wait = attempt * step_delay
            logger.warning(
                f"Retryable failure ({last_error}). "
                f"Waiting {wait:.1f}s before attempt {attempt + 1}/{max_attempts}"
            )
            await sleep(wait)

        try:
            return await func()
        except RetryableError as e:
            last_error = e

    if last_error is None:
        msg = f"max_attempts must be >= 1 (got {max_attempts})"
        raise ValueError(msg)

    logger.error(f"All {max_attempts} attempts failed. Last error: {last_error}")
    raise last_error

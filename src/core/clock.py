"""
날짜/시각 헬퍼.

일일 한도 리셋은 한국 시간(KST) 자정 기준.
Firestore에서 읽은 값은 datetime, ISO 문자열, None이 섞여 올 수 있음.
"""

from datetime import UTC, date, datetime, timedelta, timezone

KST = timezone(timedelta(hours=9), name="KST")


def now_utc() -> datetime:
    """현재 시각 (UTC, aware)."""
    return datetime.now(UTC)


def start_of_day(now: datetime | None = None) -> datetime:
    """KST 기준 오늘 00:00 (aware)."""
    current = (now or now_utc()).astimezone(KST)
    return current.replace(hour=0, minute=0, second=0, microsecond=0)


def today_string(now: datetime | None = None) -> str:
    """KST 기준 오늘 날짜 YYYY-MM-DD."""
    return start_of_day(now).date().isoformat()


def add_months(value: datetime, months: int) -> datetime:
    """
    월 단위 더하기.

    말일 보정: 1/31 + 1개월 → 2/28 (윤년이면 2/29)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, _days_in_month(year, month))
    return value.replace(year=year, month=month, day=day)


def to_datetime(value: object) -> datetime | None:
    """
    Firestore 값 → aware datetime.

    - datetime: naive면 UTC로 간주
    - date: 해당 일 00:00 UTC
    - str: ISO 8601 파싱 (실패 시 None)
    - 그 외: None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - timedelta(days=1)).day

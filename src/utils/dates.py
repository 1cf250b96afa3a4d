# src/utils/dates.py
import calendar
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """DB에 저장하는 기준 시각. (tz 정보가 없는 UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """
    value에 months 개월을 더한 시각을 반환합니다.
    대상 월에 같은 날짜가 없으면 그 달의 마지막 날로 맞춥니다. (예: 1/31 + 1개월 = 2/28)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_prefix(value: datetime) -> str:
    """주문/청구서 번호에 쓰이는 YYYYMM 문자열."""
    return value.strftime("%Y%m")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    프로바이더가 주는 ISO-8601 문자열을 tz 정보가 없는 UTC 시각으로 바꿉니다.
    해석할 수 없는 값이면 경고를 남기고 None을 반환하므로, 호출자는 현재 시각 등으로 대체합니다.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp %r; ignoring", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from loanbook.core.config import settings

LOCAL_TZ = ZoneInfo(settings.timezone)


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def today_local() -> date:
    return datetime.now(tz=LOCAL_TZ).date()

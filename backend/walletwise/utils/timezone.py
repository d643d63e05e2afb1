from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from walletwise.core.config import settings

LOCAL_TZ = ZoneInfo(settings.timezone)


def now_local() -> datetime:
    return datetime.now(tz=LOCAL_TZ)


def today_local() -> date:
    return now_local().date()


def utcnow_naive() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)

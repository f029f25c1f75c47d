from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo


DEFAULT_TZ = "Europe/Oslo"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))

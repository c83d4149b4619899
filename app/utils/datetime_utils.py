from datetime import date, datetime, time, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from app.config.settings import settings


def naive_utc_now() -> datetime:
    """
    Get current UTC datetime as a naive datetime (no timezone info).
    Audit columns such as enrolled_at are stored this way.

    Returns:
        datetime: Current UTC datetime without timezone info
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def center_today(zone: Optional[ZoneInfo] = None) -> date:
    """
    Today's date at the training center.

    Session dates are local calendar dates, so "remaining sessions" must be
    computed against the center's calendar rather than the server's.

    Args:
        zone: Timezone override (default: settings.TIMEZONE)

    Returns:
        date: Current local date
    """
    return datetime.now(zone or ZoneInfo(settings.TIMEZONE)).date()


def center_time(zone: Optional[ZoneInfo] = None) -> time:
    """Wall-clock time at the training center, comparable with session start times"""
    return datetime.now(zone or ZoneInfo(settings.TIMEZONE)).time()


def coerce_date(value: Any) -> Optional[date]:
    """
    Turn a spreadsheet cell into a date.

    Accepts date/datetime objects (openpyxl already converts real date cells)
    and free-text dates such as "2001-04-23" or "23/04/2001" (day first).

    Raises:
        ValueError: if the text cannot be read as a date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        # ISO strings are never day-first
        if len(text) >= 8 and text[4] == "-":
            return date_parser.isoparse(text).date()
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"'{text}' is not a valid date") from e

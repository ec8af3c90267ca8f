"""
Timezone boundary between the studio's local clock and the UTC wire format.

The backend stores schedule_time in UTC and takes bulk start times as UTC
HH:mm; the grid is authored in studio-local time. DST and offsets are
resolved through dateutil's tz database, never computed by hand.
"""
import os
from datetime import date, datetime, time, tzinfo
from typing import NamedTuple, Optional

from dateutil import tz
from dateutil.parser import isoparse

STUDIO_TIMEZONE = os.getenv("STUDIO_TIMEZONE", "Asia/Riyadh")


class UTCTime(NamedTuple):
    time: str  # HH:mm
    date: str  # YYYY-MM-DD


def studio_tz(name: Optional[str] = None) -> tzinfo:
    zone = tz.gettz(name or STUDIO_TIMEZONE)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name or STUDIO_TIMEZONE}")
    return zone


def to_utc(local_time: str, local_date: str, zone: Optional[tzinfo] = None) -> UTCTime:
    """Convert a studio-local HH:mm on local_date to UTC time and date."""
    zone = zone or studio_tz()
    local = datetime.combine(date.fromisoformat(local_date), time.fromisoformat(local_time), tzinfo=zone)
    utc = local.astimezone(tz.UTC)
    return UTCTime(time=utc.strftime("%H:%M"), date=utc.date().isoformat())


def parse_utc(utc_datetime: str) -> datetime:
    """Parse an ISO datetime from the backend; naive values are taken as UTC."""
    parsed = isoparse(utc_datetime)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.UTC)
    return parsed.astimezone(tz.UTC)


def to_local(utc_datetime: str, zone: Optional[tzinfo] = None) -> datetime:
    return parse_utc(utc_datetime).astimezone(zone or studio_tz())


def local_date_string(utc_datetime: str, zone: Optional[tzinfo] = None) -> str:
    return to_local(utc_datetime, zone).date().isoformat()


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_hour(hour: int) -> str:
    if hour == 12:
        return "12 PM"
    if hour > 12:
        return f"{hour - 12} PM"
    return f"{hour} AM"


def format_clock(minutes_since_midnight: int) -> str:
    hour, minute = divmod(minutes_since_midnight, 60)
    suffix = "PM" if hour >= 12 else "AM"
    hour12 = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{hour12}:{minute:02d} {suffix}"

"""
Timezone Normalization
======================

Every timestamp is stored in UTC. Times coming from users or from the AI are
interpreted in the user's timezone and converted to UTC at the boundary;
times going out to calendar APIs are rendered as local wall-clock strings
with the timezone sent separately.

Timezone names are IANA names (zoneinfo). Microsoft Graph's Windows names
("Eastern Standard Time") are mapped to IANA first.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from momentum.config import settings
from momentum.core.exceptions import ValidationException
from momentum.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEZONE = settings.default_timezone

MS_TIMEZONE_MAP = {
    "Eastern Standard Time": "America/New_York",
    "Eastern Daylight Time": "America/New_York",
    "Central Standard Time": "America/Chicago",
    "Central Daylight Time": "America/Chicago",
    "Mountain Standard Time": "America/Denver",
    "Mountain Daylight Time": "America/Denver",
    "Pacific Standard Time": "America/Los_Angeles",
    "Pacific Daylight Time": "America/Los_Angeles",
    "UTC": "UTC",
    "GMT": "UTC",
}

_OFFSET_SUFFIX = re.compile(r"[+-]\d{2}:\d{2}$")
_LOCAL_TIME = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2}))?")


class NormalizedTimestamp(NamedTuple):
    utc: Optional[datetime]
    original: Optional[str]
    was_converted: bool


def normalize_timezone(tz: Optional[str]) -> str:
    """IANA name for tz; empty input falls back to the default timezone."""
    if not tz:
        return DEFAULT_TIMEZONE
    return MS_TIMEZONE_MAP.get(tz, tz)


def get_zone(tz: Optional[str]) -> ZoneInfo:
    name = normalize_timezone(tz)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationException(f"Unknown timezone: {name}", {"timezone": name}) from e


def get_timezone_offset(tz: Optional[str], at: Optional[datetime] = None) -> float:
    """UTC offset in hours at the given instant (DST aware), e.g. -5.0 or -4.0 for New York."""
    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    offset = at.astimezone(get_zone(tz)).utcoffset() or timedelta(0)
    return offset.total_seconds() / 3600


def _has_zone_suffix(text: str) -> bool:
    return text.endswith("Z") or bool(_OFFSET_SUFFIX.search(text))


def _parse_aware(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).astimezone(timezone.utc)


def parse_local_time_to_utc(text: str, tz: Optional[str]) -> datetime:
    """
    Convert a wall-clock string in tz to an aware UTC datetime.

    Strings that already end in Z or +-HH:MM are parsed as-is. Naive
    YYYY-MM-DDTHH:MM[:SS] strings are read as local time in tz.

    Raises:
        ValidationException: If the string cannot be parsed
    """
    if _has_zone_suffix(text):
        return _parse_aware(text)

    match = _LOCAL_TIME.match(text)
    if not match:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationException(f"Could not parse time string: {text}") from e
        logger.warning("Unrecognized local time format", extra={"value": text})
        return parsed.replace(tzinfo=get_zone(tz)).astimezone(timezone.utc)

    year, month, day, hour, minute, second = match.groups()
    local = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second or 0),
        tzinfo=get_zone(tz),
    )
    return local.astimezone(timezone.utc)


def format_utc_to_local(value: datetime, tz: Optional[str]) -> str:
    """Local wall-clock string YYYY-MM-DDTHH:MM:00 (no offset), as Graph expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(get_zone(tz))
    return local.strftime("%Y-%m-%dT%H:%M:00")


def format_for_graph_api(value: datetime, tz: Optional[str]) -> str:
    return format_utc_to_local(value, tz)


def to_iso_z(value: datetime) -> str:
    """2026-01-06T19:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def create_date_in_timezone(year: int, month: int, day: int, hour: int, minute: int, tz: Optional[str]) -> datetime:
    """UTC instant of a local date and time; month is 1-based."""
    return parse_local_time_to_utc(f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:00", tz)


def get_timezone_abbreviation(at: datetime, tz: Optional[str]) -> str:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(get_zone(tz)).tzname() or "ET"


def normalize_ai_timestamp(text: Optional[str], tz: Optional[str]) -> NormalizedTimestamp:
    """
    Normalize a timestamp returned by the AI.

    With Z or an explicit offset the value is taken as-is; a bare local time
    is interpreted in the user's timezone and converted to UTC.
    """
    if not text:
        return NormalizedTimestamp(None, None, False)

    if _has_zone_suffix(text):
        return NormalizedTimestamp(_parse_aware(text), text, False)

    zone = normalize_timezone(tz)
    utc = parse_local_time_to_utc(text, zone)
    logger.debug(
        "Converted AI timestamp to UTC",
        extra={"original": text, "timezone": zone, "utc": to_iso_z(utc)}
    )
    return NormalizedTimestamp(utc, text, True)

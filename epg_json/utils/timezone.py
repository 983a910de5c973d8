"""
Date and Time utilities

This module handles XMLTV timestamp parsing and rendering into the fixed
display timezone used by the JSON output.
Centralizes all date parsing logic to maintain consistency across the application.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

# 14 digits, then an optional designator: Z, +HHMM or +HH:MM
_XMLTV_TIME_RE = re.compile(
    r"^(\d{14})(?:\s*([+-]\d{2}:?\d{2}|Z))?",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class DisplayZone:
    """Fixed-offset zone used when rendering instants for output"""
    label: str
    offset_minutes: int
    description: str = ""

    @property
    def offset(self) -> timedelta:
        return timedelta(minutes=self.offset_minutes)


IST = DisplayZone(
    label="IST",
    offset_minutes=5 * 60 + 30,
    description="Asia/Kolkata (IST, UTC+5:30)",
)

DEFAULT_DISPLAY_ZONE = IST


def _parse_offset_minutes(designator: str) -> int:
    """Convert '+0530', '+05:30' or '-0100' into signed minutes"""
    cleaned = designator.replace(":", "")
    sign = -1 if cleaned[0] == "-" else 1
    hours = int(cleaned[1:3])
    minutes = int(cleaned[3:5])
    return sign * (hours * 60 + minutes)


def _instant_from_digits(digits: str) -> datetime:
    """
    Build a UTC instant from 'YYYYMMDDHHMMSS', rolling out-of-range fields
    over into the next larger unit ('20241301...' is January 2025)
    """
    year, month, day = int(digits[0:4]), int(digits[4:6]), int(digits[6:8])
    hour, minute, second = int(digits[8:10]), int(digits[10:12]), int(digits[12:14])

    year += (month - 1) // 12
    base = datetime(year, (month - 1) % 12 + 1, 1, tzinfo=timezone.utc)
    return base + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)


def parse_xmltv_time(raw: str | None) -> datetime | None:
    """
    Parse an XMLTV timestamp into a timezone-aware UTC datetime

    Supported forms: '20240101120000', '20240101120000 Z',
    '20240101120000 +0530', '20240101120000+05:30'. Anything after the
    optional designator is ignored. Without a designator (or with 'Z') the
    digits are taken as UTC wall-clock time.

    Args:
        raw: XMLTV timestamp string

    Returns:
        Datetime in UTC, or None if the string does not start with 14 digits
        or the instant falls outside the range datetime can represent

    Raises:
        TypeError: If raw is neither None nor a string
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise TypeError(f"XMLTV timestamp must be a string, got {type(raw).__name__}")

    match = _XMLTV_TIME_RE.match(raw.strip())
    if not match:
        return None

    digits, designator = match.group(1), match.group(2)

    try:
        dt = _instant_from_digits(digits)
        if designator and designator.upper() != "Z":
            dt -= timedelta(minutes=_parse_offset_minutes(designator))
    except (ValueError, OverflowError):
        logger.debug(f"Timestamp out of representable range: '{raw}'")
        return None

    return dt


def format_display_time(instant: datetime, zone: DisplayZone = DEFAULT_DISPLAY_ZONE) -> str:
    """
    Render a UTC instant as 'YYYY-MM-DD HH:MM:SS <LABEL>' in the display zone

    Args:
        instant: Timezone-aware datetime (naive values are taken as UTC)
        zone: Fixed-offset display zone

    Returns:
        Formatted display string

    Raises:
        OverflowError: If the shifted instant leaves the datetime range
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    shifted = instant.astimezone(timezone.utc) + zone.offset
    return f"{shifted:%Y-%m-%d %H:%M:%S} {zone.label}"


def format_or_passthrough(raw: str | None, zone: DisplayZone = DEFAULT_DISPLAY_ZONE) -> str:
    """
    Convert an XMLTV timestamp into a display string, degrading gracefully

    A timestamp that cannot be parsed, or whose display time cannot be
    represented, is returned verbatim so that a single bad value never aborts
    the rest of the document.

    Args:
        raw: XMLTV timestamp string
        zone: Fixed-offset display zone

    Returns:
        Display string, the raw input unchanged, or '' for empty input
    """
    instant = parse_xmltv_time(raw)
    if instant is None:
        return raw or ""
    try:
        return format_display_time(instant, zone)
    except OverflowError:
        logger.debug(f"Display time out of range, passing through: '{raw}'")
        return raw

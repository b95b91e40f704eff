"""Time specification strings (pure, no I/O).

A contest time field is stored as an authoritative string plus a derived
timestamp. The string is either:
- an absolute date/time, e.g. "2024-05-01 10:00:00 Europe/Amsterdam"
- a signed offset relative to the contest start, e.g. "+5:00" or "-0:30:00.5"

parse_time_spec() classifies a string without touching any contest state;
anchoring relative offsets to a start time is the resolver's job (see
Contest.absolute_time).
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

RELATIVE_TIME_RE = re.compile(r"^[+-]\d+:\d{2}(:\d{2}(\.\d{0,6})?)?$")

_ABSOLUTE_TIME_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[ T]"
    r"(?P<time>\d{1,2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?)"
    r"\s*(?P<tz>\S*)$"
)
_NUMERIC_OFFSET_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2}):?(?P<minutes>\d{2})$")


@dataclass(frozen=True)
class UnsetTime:
    """No time specified (None or blank string)."""


@dataclass(frozen=True)
class RelativeOffset:
    """Signed offset in seconds from the contest start."""

    seconds: float


@dataclass(frozen=True)
class AbsoluteInstant:
    """Wall-clock instant in seconds since the epoch."""

    timestamp: float


@dataclass(frozen=True)
class InvalidTimeSpec:
    """A non-empty string that is neither relative nor a recognizable date/time."""

    spec: str


TimeSpec = Union[UnsetTime, RelativeOffset, AbsoluteInstant, InvalidTimeSpec]


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Map a timezone label to a tzinfo, or None if it is unknown.

    Accepts "UTC"/"Z", numeric offsets ("+02:00", "-0530") and IANA names.
    """
    if not name or name in {"UTC", "Z", "utc", "z"}:
        return timezone.utc
    offset = _NUMERIC_OFFSET_RE.match(name)
    if offset:
        delta = timedelta(
            hours=int(offset.group("hours")), minutes=int(offset.group("minutes"))
        )
        return timezone(-delta if offset.group("sign") == "-" else delta)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError covers names of tzdata directories such as "Europe"
        return None


def _parse_relative(spec: str) -> RelativeOffset:
    sign = -1 if spec[0] == "-" else 1
    parts = spec[1:].split(":", 2)
    hours = int(parts[0])
    minutes = int(parts[1])
    # float() accepts both "05" and the trailing-dot form "05."
    seconds = float(parts[2]) if len(parts) == 3 else 0.0
    return RelativeOffset(sign * (seconds + 60 * (minutes + 60 * hours)))


def _parse_absolute(spec: str, default_tz: str | None) -> float | None:
    match = _ABSOLUTE_TIME_RE.match(spec)
    if match:
        tz = resolve_timezone(match.group("tz") or default_tz)
        if tz is None:
            return None
        time_part = match.group("time")
        if time_part.count(":") == 1:
            time_part += ":00"
        hour, rest = time_part.split(":", 1)
        try:
            naive = datetime.fromisoformat(f"{match.group('date')} {int(hour):02d}:{rest}")
            return naive.replace(tzinfo=tz).timestamp()
        except (ValueError, OverflowError):
            return None

    try:
        parsed = datetime.fromisoformat(spec)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        tz = resolve_timezone(default_tz)
        if tz is None:
            return None
        parsed = parsed.replace(tzinfo=tz)
    try:
        return parsed.timestamp()
    except OverflowError:
        return None


def parse_time_spec(spec: str | None, default_tz: str | None = "UTC") -> TimeSpec:
    """Classify a time specification string.

    Args:
        spec: Authoritative string as entered by the jury (may be None)
        default_tz: Timezone for absolute strings that carry none

    Returns:
        UnsetTime, RelativeOffset, AbsoluteInstant or InvalidTimeSpec.
        Never raises for malformed input.

    Examples:
        - None → UnsetTime()
        - "+1:30" → RelativeOffset(5400.0)
        - "-0:00:30.5" → RelativeOffset(-30.5)
        - "2024-05-01 10:00:00 UTC" → AbsoluteInstant(1714557600.0)
        - "tomorrow-ish" → InvalidTimeSpec("tomorrow-ish")
    """
    if spec is None or not spec.strip():
        return UnsetTime()
    spec = spec.strip()
    if RELATIVE_TIME_RE.match(spec):
        return _parse_relative(spec)
    timestamp = _parse_absolute(spec, default_tz)
    if timestamp is None:
        logger.debug(f"Unparseable time string: {spec!r}")
        return InvalidTimeSpec(spec)
    return AbsoluteInstant(timestamp)


def format_relative(seconds: float) -> str:
    """Render a signed duration as [-]H:MM:SS, keeping milliseconds if present.

    Examples:
        - 18000 → "5:00:00"
        - -90 → "-0:01:30"
        - 61.25 → "0:01:01.250"
    """
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    whole = math.floor(seconds)
    millis = round((seconds - whole) * 1000)
    if millis == 1000:
        whole += 1
        millis = 0
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    text = f"{sign}{hours}:{minutes:02d}:{secs:02d}"
    if millis:
        text += f".{millis:03d}"
    return text


def is_displayable(timestamp: float | None, tz_name: str | None = "UTC") -> bool:
    """Whether a timestamp lies within the calendar range datetime can render."""
    if timestamp is None:
        return True
    try:
        datetime.fromtimestamp(timestamp, resolve_timezone(tz_name) or timezone.utc)
    except (OverflowError, ValueError, OSError):
        return False
    return True


def format_absolute(timestamp: float | None, tz_name: str | None = "UTC") -> str:
    """Render a timestamp as 'YYYY-MM-DD HH:MM:SS (TZ)'; '' for None or out of range."""
    if timestamp is None:
        return ""
    tz = resolve_timezone(tz_name) or timezone.utc
    try:
        moment = datetime.fromtimestamp(timestamp, tz)
    except (OverflowError, ValueError, OSError):
        logger.debug(f"Timestamp {timestamp} is outside the displayable range")
        return ""
    return f"{moment:%Y-%m-%d %H:%M:%S} ({moment.tzname()})"


def format_countdown(seconds: float) -> str:
    """Render a non-negative countdown as H:MM:SS, rounding partial seconds up."""
    whole = max(0, math.ceil(seconds))
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"

"""Shared validators for BAP protocol models."""

import re
from datetime import timedelta

# ISO 8601 time-only durations as used by Beckn ttl and item TAT fields.
_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


def parse_iso_duration(value: str) -> timedelta:
    """Parse an ISO 8601 duration such as ``PT30S`` or ``PT1H30M``.

    Raises ValueError if the string is not a supported duration.

    Example:
        >>> parse_iso_duration("PT1H30M")
        datetime.timedelta(seconds=5400)
    """
    match = _ISO_DURATION_RE.match(value.strip())
    if not match or value.strip() in ("P", "PT"):
        raise ValueError(f"Invalid ISO 8601 duration: {value!r}")
    parts = {name: int(number) for name, number in match.groupdict().items() if number}
    return timedelta(**parts)


def validate_iso_duration(value: str) -> str:
    """Pydantic-friendly wrapper around parse_iso_duration."""
    parse_iso_duration(value)
    return value


def duration_to_minutes(value: str, default: int = 60) -> int:
    """Whole minutes in a duration, rounding seconds up; ``default`` if unparseable."""
    try:
        seconds = parse_iso_duration(value).total_seconds()
    except ValueError:
        return default
    return int(-(-seconds // 60))

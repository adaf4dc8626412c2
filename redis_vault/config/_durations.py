"""Human-friendly duration parsing (``90s``, ``5m``, ``1h30m``, ``7d``)."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

_UNITS = {
    "ms": 0.001,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}

_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")


def parse_duration(value: Any) -> timedelta:
    """Parse a duration from a string, a number of seconds, or a timedelta."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip().lower()
    if not text:
        raise ValueError("Empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))

    total = 0.0
    pos = 0
    for match in _PART_RE.finditer(text):
        if text[pos:match.start()].strip():
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        if unit not in _UNITS:
            raise ValueError(f"Unknown duration unit {unit!r} in {value!r}")
        total += float(amount) * _UNITS[unit]
        pos = match.end()

    if pos == 0 or text[pos:].strip():
        raise ValueError(f"Invalid duration: {value!r}")
    return timedelta(seconds=total)


def format_duration(value: timedelta) -> str:
    """Render a duration in the same compact form :func:`parse_duration` reads."""
    seconds = int(value.total_seconds())
    if seconds == 0:
        return "0s"
    parts = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        count, seconds = divmod(seconds, size)
        if count:
            parts.append(f"{count}{unit}")
    return "".join(parts)


Duration = Annotated[
    timedelta,
    BeforeValidator(parse_duration),
    PlainSerializer(format_duration, return_type=str),
]

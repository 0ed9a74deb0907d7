"""Lenient number parsing and display helpers."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value, default: int = 0) -> int:
    """Parse the leading integer of ``value`` the way form inputs are read.

    ``"12"`` and ``"12 boxes"`` give 12, ``7.9`` gives 7, anything without a
    leading integer gives ``default``.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return default
        return int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return default
    return int(match.group(1))


def coerce_quantity(value) -> int:
    """Quantities are non-negative integers; unparseable input becomes 0."""

    return max(parse_int(value, 0), 0)


def safe_number(value, fallback: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(number) or math.isinf(number):
        return fallback
    return number


def format_currency(value, currency: str = "€", decimals: int = 2) -> str:
    return f"{currency}{safe_number(value):.{decimals}f}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value) -> datetime | None:
    """Parse ISO-8601 strings (``Z`` suffix allowed) into aware datetimes."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

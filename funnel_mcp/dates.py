"""Flexible date parsing for spreadsheet and API exports.

Exports mix spreadsheet serial numbers, Brazilian ``dd/mm/yyyy`` strings,
``mm/yyyy`` periods, Portuguese month names, ISO timestamps and free-form
calendar strings, sometimes in the same column.  :func:`parse_flexible_date`
returns a naive ``datetime`` or ``None``; callers treat ``None`` as "exclude
from date-based work".
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

from dateutil import parser as dateparser

from funnel_mcp.constants import (
    EXCEL_EPOCH_OFFSET_DAYS,
    MS_PER_DAY,
    PT_MONTHS,
    SERIAL_STRING_MIN,
)
from funnel_mcp.normalization import strip_accents

_UNIX_EPOCH = datetime(1970, 1, 1)

_DAY_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")
_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})[/\-](\d{4})$")
_MONTH_NAME_YEAR_RE = re.compile(r"^([a-z]{3,10})[/\-\s]+(\d{4})$")
_NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")
_YEAR_RE = re.compile(r"^\d{4}$")

# Fields missing from a free-form string (a bare year, no day) fall back to these.
_FREEFORM_DEFAULT = datetime(1900, 1, 1)


def from_excel_serial(serial: float) -> datetime | None:
    """Convert a spreadsheet serial (1899-12-30 base) to a naive datetime."""
    if math.isnan(serial) or math.isinf(serial):
        return None
    ms = round((serial - EXCEL_EPOCH_OFFSET_DAYS) * MS_PER_DAY)
    try:
        return _UNIX_EPOCH + timedelta(milliseconds=ms)
    except OverflowError:
        return None


def _safe_datetime(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _naive_utc(parsed: datetime) -> datetime:
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_freeform(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = dateparser.parse(text, dayfirst=False, default=_FREEFORM_DEFAULT)
        except (ValueError, OverflowError):
            return None
    return _naive_utc(parsed)


def _parse_string(raw: str) -> datetime | None:
    text = raw.strip()
    if not text:
        return None

    # Time of day after the date is ignored for the slash formats.
    date_part = text.split(" ")[0]

    match = _DAY_MONTH_YEAR_RE.match(date_part)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        return _safe_datetime(year, month, day)

    match = _MONTH_YEAR_RE.match(date_part)
    if match:
        month, year = int(match.group(1)), int(match.group(2))
        return _safe_datetime(year, month, 1)

    match = _MONTH_NAME_YEAR_RE.match(strip_accents(text).lower())
    if match:
        month_num = PT_MONTHS.get(match.group(1))
        if month_num:
            return _safe_datetime(int(match.group(2)), month_num, 1)

    if _NUMERIC_RE.match(text):
        serial = float(text)
        if serial > SERIAL_STRING_MIN:
            return from_excel_serial(serial)
        if not _YEAR_RE.match(text):
            return None

    return _parse_freeform(text)


def parse_flexible_date(value: Any) -> datetime | None:
    """Parse any supported date representation.  Never raises."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return from_excel_serial(float(value))
    if isinstance(value, str):
        return _parse_string(value)
    return None


def period_of(dates: list[datetime]) -> tuple[datetime | None, datetime | None]:
    """Return ``(min, max)`` of ``dates`` or ``(None, None)`` when empty."""
    if not dates:
        return None, None
    return min(dates), max(dates)

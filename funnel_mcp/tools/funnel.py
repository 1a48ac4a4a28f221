"""Funnel analytics tool implementations for dealers, metrics and comparison."""

from __future__ import annotations

import json
from datetime import date, datetime, time

from funnel_mcp.analytics.comparison import compare_by_dealer
from funnel_mcp.analytics.filters import filter_options
from funnel_mcp.data.records import DateRange
from funnel_mcp.data.session import require_session
from funnel_mcp.dates import parse_flexible_date


def parse_bound(value: str, *, name: str) -> date | datetime | None:
    """Parse a tool date argument.  A date without time of day stays a whole-day ``date``."""
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    parsed = parse_flexible_date(text)
    if parsed is None:
        raise ValueError(f"{name} is not a recognizable date: {value!r}")
    if parsed.time() == time.min:
        return parsed.date()
    return parsed


def _date_range(start: str, end: str) -> DateRange:
    date_range = DateRange(
        start=parse_bound(start, name="start"),
        end=parse_bound(end, name="end"),
    )
    lower, upper = date_range.lower, date_range.upper
    if lower is not None and upper is not None and lower > upper:
        raise ValueError("start must not be after end.")
    return date_range


def list_dealers_impl() -> str:
    session = require_session()
    return json.dumps(
        {"dealers": list(session.original.dealers), "count": len(session.original.dealers)},
        ensure_ascii=False,
    )


def get_funnel_metrics_impl(
    *,
    start: str = "",
    end: str = "",
    dealers: list[str] | None = None,
) -> str:
    """Filter the loaded data and return its funnel metrics."""
    session = require_session()
    date_range = _date_range(start, end)
    options = filter_options(
        start=date_range.start,
        end=date_range.end,
        dealers=dealers or (),
    )
    snapshot = session.apply(options)

    payload = snapshot.summary()
    payload["filters"] = {
        "start": start.strip() or None,
        "end": end.strip() or None,
        "dealers": list(options.selected_dealers),
    }
    payload["metrics"] = snapshot.metrics.to_dict() if snapshot.metrics else None
    return json.dumps(payload, ensure_ascii=False)


def compare_dealers_impl(*, start: str = "", end: str = "") -> str:
    """Per-dealer metrics over the date range, plus the national row."""
    session = require_session()
    comparison = compare_by_dealer(
        session.original,
        _date_range(start, end),
        session.aggregation,
    )
    return json.dumps(comparison.to_dict(), ensure_ascii=False)

"""Loaded-data session: the original snapshot plus the last filtered view.

Tool modules read the loaded data through :func:`get_session`; tests inject
or reset it with :func:`set_session`.  Loading a new source replaces the
whole session, so no filtered view can outlive the data it came from.
"""

from __future__ import annotations

from dataclasses import dataclass

from funnel_mcp.analytics.filters import FilterOptions, apply_filters
from funnel_mcp.analytics.metrics import DEFAULT_AGGREGATION, AggregationConfig
from funnel_mcp.data.records import Snapshot


@dataclass
class FunnelSession:
    original: Snapshot
    source: str = ""
    aggregation: AggregationConfig = DEFAULT_AGGREGATION
    filtered: Snapshot | None = None
    last_options: FilterOptions | None = None

    def apply(self, options: FilterOptions) -> Snapshot:
        """Filter the original snapshot and remember the result as the current view."""
        self.filtered = apply_filters(self.original, options, self.aggregation)
        self.last_options = options
        return self.filtered

    @property
    def current(self) -> Snapshot:
        return self.filtered if self.filtered is not None else self.original


_session: FunnelSession | None = None


def get_session() -> FunnelSession | None:
    """Return the active session, or ``None`` when nothing has been loaded."""
    return _session


def set_session(session: FunnelSession | None) -> None:
    global _session  # noqa: PLW0603
    _session = session


def require_session() -> FunnelSession:
    session = get_session()
    if session is None:
        raise ValueError(
            "No funnel data is loaded yet. Call load_workbook or load_from_api first."
        )
    return session

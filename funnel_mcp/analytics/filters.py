"""Filter engine: narrow every record set by date range and dealer selection.

Filtering always starts from the original snapshot and produces a fresh one;
nothing is mutated and nothing is carried over between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from funnel_mcp.analytics.correlation import LeadIndex, correlate
from funnel_mcp.analytics.metrics import DEFAULT_AGGREGATION, AggregationConfig, aggregate
from funnel_mcp.data.records import (
    SHEET_ORDER,
    DateRange,
    FilterReport,
    KindFilterStats,
    RecordKind,
    RecordSets,
    Row,
    Snapshot,
    adapter_for,
)
from funnel_mcp.dates import period_of
from funnel_mcp.normalization import normalize_dealer_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOptions:
    """An empty dealer selection means "no dealer restriction"."""

    date_range: DateRange = field(default_factory=DateRange)
    selected_dealers: tuple[str, ...] = ()

    @property
    def dealer_keys(self) -> frozenset[str]:
        keys = (normalize_dealer_name(d) for d in self.selected_dealers)
        return frozenset(k for k in keys if k)

    @property
    def is_empty(self) -> bool:
        return not self.selected_dealers and self.date_range.is_empty


def enrich_snapshot_records(records: RecordSets) -> RecordSets:
    """Backfill dealer/date on TestDrive and Journey rows from the Lead set."""
    index = LeadIndex.from_rows(records[RecordKind.LEAD])
    changes: dict[str, list[Row]] = {}
    for kind in SHEET_ORDER:
        adapter = adapter_for(kind)
        if adapter.correlates_to_lead:
            changes[kind.value] = [correlate(row, index, adapter) for row in records[kind]]
    return records.replace(**changes)


def _filter_kind(
    kind: RecordKind,
    rows: Iterable[Row],
    options: FilterOptions,
    dealer_keys: frozenset[str],
    index: LeadIndex,
    surviving_dates: list[datetime],
) -> tuple[list[Row], KindFilterStats]:
    adapter = adapter_for(kind)
    date_range = options.date_range
    check_dates = not date_range.is_empty
    check_dealers = bool(options.selected_dealers)

    kept: list[Row] = []
    rejected_dealer = rejected_missing_date = rejected_out_of_range = 0

    for row in rows:
        candidate = correlate(row, index, adapter) if adapter.correlates_to_lead else row

        if check_dealers:
            key = normalize_dealer_name(adapter.dealer(candidate))
            if not key or key not in dealer_keys:
                rejected_dealer += 1
                continue

        moment = adapter.date(candidate)
        if check_dates:
            if moment is None:
                rejected_missing_date += 1
                continue
            if not date_range.contains(moment):
                rejected_out_of_range += 1
                continue

        kept.append(candidate)
        if moment is not None:
            surviving_dates.append(moment)

    stats = KindFilterStats(
        kept=len(kept),
        rejected_dealer=rejected_dealer,
        rejected_missing_date=rejected_missing_date,
        rejected_out_of_range=rejected_out_of_range,
    )
    logger.debug(
        "%s filtered: kept %d, rejected %d (dealer=%d, no_date=%d, out_of_range=%d)",
        kind.sheet_label,
        stats.kept,
        stats.rejected,
        rejected_dealer,
        rejected_missing_date,
        rejected_out_of_range,
    )
    return kept, stats


def apply_filters(
    original: Snapshot,
    options: FilterOptions,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> Snapshot:
    """Derive a filtered snapshot from ``original``.

    With no active predicate the original rows come back with TestDrive and
    Journey enriched from the Lead set, so per-dealer consumers still get
    dealer attribution.
    """
    if options.is_empty:
        records = enrich_snapshot_records(original.records)
        metrics = aggregate(records, config)
        return Snapshot(
            records=records,
            period=original.period,
            dealers=original.dealers,
            metrics=metrics,
        )

    index = LeadIndex.from_rows(original.records[RecordKind.LEAD])
    dealer_keys = options.dealer_keys
    surviving_dates: list[datetime] = []
    filtered: dict[RecordKind, list[Row]] = {}
    per_kind: dict[RecordKind, KindFilterStats] = {}

    for kind in SHEET_ORDER:
        filtered[kind], per_kind[kind] = _filter_kind(
            kind,
            original.records[kind],
            options,
            dealer_keys,
            index,
            surviving_dates,
        )

    records = RecordSets(filtered)
    period = period_of(surviving_dates)
    if period == (None, None):
        period = original.period

    return Snapshot(
        records=records,
        period=period,
        dealers=original.dealers,
        metrics=aggregate(records, config),
        filter_report=FilterReport(per_kind),
    )


def filter_options(
    *,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    dealers: Sequence[str] = (),
) -> FilterOptions:
    """Convenience constructor used by the tool layer."""
    return FilterOptions(
        date_range=DateRange(start=start, end=end),
        selected_dealers=tuple(d for d in dealers if d and d.strip()),
    )

"""Per-dealer funnel comparison with a volume-weighted national row."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from funnel_mcp.analytics.dealers import build_catalog
from funnel_mcp.analytics.filters import FilterOptions, apply_filters
from funnel_mcp.analytics.metrics import (
    DEFAULT_AGGREGATION,
    AggregationConfig,
    InvoiceCountPolicy,
    resolve_total_invoiced,
    safe_rate,
)
from funnel_mcp.constants import FLAG_INVOICED_KEYS, FLAG_TEST_DRIVE_KEYS, NATIONAL_AVERAGE_LABEL
from funnel_mcp.data.records import DateRange, RecordKind, Snapshot, adapter_for
from funnel_mcp.normalization import is_flag_set, resolve


@dataclass
class _DealerTally:
    leads: int = 0
    leads_with_test_drive: int = 0
    leads_invoiced: int = 0
    test_drives: int = 0
    test_drives_invoiced: int = 0
    invoices: int = 0
    store_visits: float = 0.0

    def absorb(self, other: _DealerTally) -> None:
        self.leads += other.leads
        self.leads_with_test_drive += other.leads_with_test_drive
        self.leads_invoiced += other.leads_invoiced
        self.test_drives += other.test_drives
        self.test_drives_invoiced += other.test_drives_invoiced
        self.invoices += other.invoices
        self.store_visits += other.store_visits


@dataclass(frozen=True)
class DealerMetrics:
    dealer_name: str
    leads: int
    leads_with_test_drive: int
    leads_invoiced: int
    test_drives: int
    test_drives_invoiced: int
    invoices: int
    store_visits: float
    sales: int
    leads_to_test_drive_rate: float
    test_drive_to_sales_rate: float
    total_conversion_rate: float
    visits_to_sales_rate: float

    @classmethod
    def from_tally(
        cls,
        name: str,
        tally: _DealerTally,
        policy: InvoiceCountPolicy,
        *,
        sales: int | None = None,
    ) -> DealerMetrics:
        if sales is None:
            sales = resolve_total_invoiced(
                tally.invoices,
                tally.leads_invoiced,
                tally.test_drives_invoiced,
                policy,
            )
        return cls(
            dealer_name=name,
            leads=tally.leads,
            leads_with_test_drive=tally.leads_with_test_drive,
            leads_invoiced=tally.leads_invoiced,
            test_drives=tally.test_drives,
            test_drives_invoiced=tally.test_drives_invoiced,
            invoices=tally.invoices,
            store_visits=tally.store_visits,
            sales=sales,
            leads_to_test_drive_rate=safe_rate(tally.leads_with_test_drive, tally.leads),
            test_drive_to_sales_rate=safe_rate(tally.test_drives_invoiced, tally.test_drives),
            total_conversion_rate=safe_rate(sales, tally.leads),
            visits_to_sales_rate=safe_rate(sales, tally.store_visits),
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class DealerComparison:
    dealers: list[DealerMetrics] = field(default_factory=list)
    national_average: DealerMetrics | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dealers": [d.to_dict() for d in self.dealers],
            "national_average": (
                self.national_average.to_dict() if self.national_average else None
            ),
        }


def compare_by_dealer(
    original: Snapshot,
    date_range: DateRange | None = None,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> DealerComparison:
    """Group date-filtered rows by normalized dealer.

    Dealer selections are ignored here so every dealer keeps its rows.  Rows
    with no resolvable dealer are left out of every group.  Display names come
    from the unfiltered records so they do not depend on the date range.
    """
    snapshot = apply_filters(original, FilterOptions(date_range=date_range or DateRange()), config)
    records = snapshot.records

    catalog = build_catalog(original.records)
    tallies: dict[str, _DealerTally] = {}

    def _tally_for(kind: RecordKind, row: dict[str, Any]) -> _DealerTally | None:
        key = catalog.add(adapter_for(kind).dealer(row))
        if not key:
            return None
        return tallies.setdefault(key, _DealerTally())

    for row in records[RecordKind.LEAD]:
        tally = _tally_for(RecordKind.LEAD, row)
        if tally is None:
            continue
        tally.leads += 1
        if is_flag_set(resolve(row, FLAG_TEST_DRIVE_KEYS)):
            tally.leads_with_test_drive += 1
        if is_flag_set(resolve(row, FLAG_INVOICED_KEYS)):
            tally.leads_invoiced += 1

    for row in records[RecordKind.TEST_DRIVE]:
        tally = _tally_for(RecordKind.TEST_DRIVE, row)
        if tally is None:
            continue
        tally.test_drives += 1
        if is_flag_set(resolve(row, FLAG_INVOICED_KEYS)):
            tally.test_drives_invoiced += 1

    for row in records[RecordKind.INVOICE]:
        tally = _tally_for(RecordKind.INVOICE, row)
        if tally is not None:
            tally.invoices += 1

    visit_adapter = adapter_for(RecordKind.STORE_VISIT)
    for row in records[RecordKind.STORE_VISIT]:
        tally = _tally_for(RecordKind.STORE_VISIT, row)
        if tally is not None:
            tally.store_visits += visit_adapter.visit_count(row)

    policy = config.invoice_policy
    per_dealer = [
        DealerMetrics.from_tally(catalog.display_name(key) or key, tally, policy)
        for key, tally in tallies.items()
    ]
    per_dealer.sort(key=lambda d: d.leads, reverse=True)

    totals = _DealerTally()
    for tally in tallies.values():
        totals.absorb(tally)
    national = DealerMetrics.from_tally(
        NATIONAL_AVERAGE_LABEL,
        totals,
        policy,
        sales=sum(d.sales for d in per_dealer),
    )

    return DealerComparison(dealers=per_dealer, national_average=national)

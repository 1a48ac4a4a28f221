"""Record-set model: kinds, per-entity adapters and immutable snapshots.

Rows are plain dicts whose key order follows the source column order.  The
exports carry no header guarantees, so every named lookup goes through an
:class:`EntityAdapter` that knows its own alias lists and, for the kinds that
need it, which column to fall back to when no alias matches.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any

from funnel_mcp.constants import (
    DATE_KEYS,
    DEALER_KEYS,
    ID_KEYS,
    VISIT_COUNT_KEYS,
)
from funnel_mcp.dates import parse_flexible_date
from funnel_mcp.normalization import parse_float, resolve, resolve_position

if TYPE_CHECKING:
    from funnel_mcp.analytics.metrics import Metrics

Row = dict[str, Any]


class RecordKind(enum.Enum):
    """Logical record sets, in workbook sheet order."""

    LEAD = "lead"
    TEST_DRIVE = "test_drive"
    JOURNEY = "journey"
    INVOICE = "invoice"
    STORE_VISIT = "store_visit"
    CUSTOMER_MIX = "customer_mix"
    SATISFACTION = "satisfaction"

    @property
    def sheet_label(self) -> str:
        return f"Sheet{SHEET_ORDER.index(self) + 1}"


SHEET_ORDER: tuple[RecordKind, ...] = tuple(RecordKind)


@dataclass(frozen=True)
class EntityAdapter:
    """Named + positional accessors for one record kind."""

    kind: RecordKind
    dealer_column: int | None = None
    date_column: int | None = None
    count_column: int | None = None
    correlates_to_lead: bool = False

    def identifier(self, row: Mapping[str, Any]) -> str | None:
        value = resolve(row, ID_KEYS)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def named_dealer(self, row: Mapping[str, Any]) -> Any | None:
        return resolve(row, DEALER_KEYS)

    def named_date(self, row: Mapping[str, Any]) -> Any | None:
        return resolve(row, DATE_KEYS)

    def dealer(self, row: Mapping[str, Any]) -> str | None:
        value = self.named_dealer(row)
        if value is None and self.dealer_column is not None:
            value = resolve_position(row, self.dealer_column)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def raw_date(self, row: Mapping[str, Any]) -> Any | None:
        value = self.named_date(row)
        if value is None and self.date_column is not None:
            value = resolve_position(row, self.date_column)
        return value

    def date(self, row: Mapping[str, Any]) -> datetime | None:
        return parse_flexible_date(self.raw_date(row))

    def visit_count(self, row: Mapping[str, Any]) -> float:
        value = resolve(row, VISIT_COUNT_KEYS)
        if value is None and self.count_column is not None:
            value = resolve_position(row, self.count_column)
        parsed = parse_float(value)
        return parsed if parsed is not None else 0.0


ADAPTERS: dict[RecordKind, EntityAdapter] = {
    RecordKind.LEAD: EntityAdapter(RecordKind.LEAD),
    RecordKind.TEST_DRIVE: EntityAdapter(
        RecordKind.TEST_DRIVE,
        dealer_column=3,
        date_column=4,
        correlates_to_lead=True,
    ),
    RecordKind.JOURNEY: EntityAdapter(RecordKind.JOURNEY, correlates_to_lead=True),
    RecordKind.INVOICE: EntityAdapter(RecordKind.INVOICE, dealer_column=5, date_column=3),
    RecordKind.STORE_VISIT: EntityAdapter(
        RecordKind.STORE_VISIT,
        date_column=1,
        count_column=2,
    ),
    RecordKind.CUSTOMER_MIX: EntityAdapter(RecordKind.CUSTOMER_MIX),
    RecordKind.SATISFACTION: EntityAdapter(RecordKind.SATISFACTION),
}


def adapter_for(kind: RecordKind) -> EntityAdapter:
    return ADAPTERS[kind]


class RecordSets(Mapping[RecordKind, tuple[Row, ...]]):
    """Immutable mapping of every :class:`RecordKind` to its rows.

    Kinds that were not loaded map to an empty tuple.
    """

    def __init__(self, sets: Mapping[RecordKind, Iterable[Row]] | None = None) -> None:
        sets = sets or {}
        self._sets: dict[RecordKind, tuple[Row, ...]] = {
            kind: tuple(sets.get(kind, ())) for kind in SHEET_ORDER
        }

    @classmethod
    def from_sheets(cls, sheets: Iterable[Iterable[Row]]) -> RecordSets:
        """Map an ordered list of sheets positionally onto record kinds."""
        return cls(dict(zip(SHEET_ORDER, sheets)))

    def __getitem__(self, kind: RecordKind) -> tuple[Row, ...]:
        return self._sets[kind]

    def __iter__(self) -> Iterator[RecordKind]:
        return iter(self._sets)

    def __len__(self) -> int:
        return len(self._sets)

    def replace(self, **changes: Iterable[Row]) -> RecordSets:
        """Return a copy with some kinds swapped, keyed by lowercase kind value."""
        updated = dict(self._sets)
        for name, rows in changes.items():
            updated[RecordKind(name)] = tuple(rows)
        return RecordSets(updated)

    def counts(self) -> dict[str, int]:
        return {kind.value: len(rows) for kind, rows in self._sets.items()}


@dataclass(frozen=True)
class DateRange:
    """Inclusive date bounds.  ``None`` leaves that side unbounded.

    A plain ``date`` used as the end bound covers that whole day.
    """

    start: date | datetime | None = None
    end: date | datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None

    @property
    def lower(self) -> datetime | None:
        if self.start is None:
            return None
        if isinstance(self.start, datetime):
            return self.start
        return datetime.combine(self.start, time.min)

    @property
    def upper(self) -> datetime | None:
        if self.end is None:
            return None
        if isinstance(self.end, datetime):
            return self.end
        return datetime.combine(self.end, time.max)

    def contains(self, moment: datetime) -> bool:
        lower, upper = self.lower, self.upper
        if lower is not None and moment < lower:
            return False
        if upper is not None and moment > upper:
            return False
        return True


@dataclass(frozen=True)
class KindFilterStats:
    kept: int = 0
    rejected_dealer: int = 0
    rejected_missing_date: int = 0
    rejected_out_of_range: int = 0

    @property
    def rejected(self) -> int:
        return self.rejected_dealer + self.rejected_missing_date + self.rejected_out_of_range

    def to_dict(self) -> dict[str, int]:
        return {
            "kept": self.kept,
            "rejected": self.rejected,
            "rejected_dealer": self.rejected_dealer,
            "rejected_missing_date": self.rejected_missing_date,
            "rejected_out_of_range": self.rejected_out_of_range,
        }


@dataclass(frozen=True)
class FilterReport:
    per_kind: dict[RecordKind, KindFilterStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {kind.value: stats.to_dict() for kind, stats in self.per_kind.items()}


@dataclass(frozen=True)
class Snapshot:
    """One immutable set of record sets plus derived metrics and period."""

    records: RecordSets
    period: tuple[datetime | None, datetime | None] = (None, None)
    dealers: tuple[str, ...] = ()
    metrics: Metrics | None = None
    filter_report: FilterReport | None = None

    @property
    def period_start(self) -> datetime | None:
        return self.period[0]

    @property
    def period_end(self) -> datetime | None:
        return self.period[1]

    def summary(self) -> dict[str, Any]:
        start, end = self.period
        payload: dict[str, Any] = {
            "period": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "record_counts": self.records.counts(),
            "dealer_count": len(self.dealers),
        }
        if self.filter_report is not None:
            payload["filter_report"] = self.filter_report.to_dict()
        return payload

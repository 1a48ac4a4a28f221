"""Cross-table correlation: backfill dealer/date from the Lead set by identifier."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from funnel_mcp.constants import CORRELATED_DATE_KEY, CORRELATED_DEALER_KEY
from funnel_mcp.data.records import EntityAdapter, RecordKind, Row, adapter_for

_LEAD = adapter_for(RecordKind.LEAD)


class LeadIndex:
    """Lead identifier → Lead row.  The first row seen for an identifier wins."""

    def __init__(self, rows_by_id: Mapping[str, Row]) -> None:
        self._rows = dict(rows_by_id)

    @classmethod
    def from_rows(cls, lead_rows: Iterable[Row]) -> LeadIndex:
        rows_by_id: dict[str, Row] = {}
        for row in lead_rows:
            identifier = _LEAD.identifier(row)
            if identifier is not None and identifier not in rows_by_id:
                rows_by_id[identifier] = row
        return cls(rows_by_id)

    def get(self, identifier: str | None) -> Row | None:
        if identifier is None:
            return None
        return self._rows.get(identifier)

    def __len__(self) -> int:
        return len(self._rows)


def needs_correlation(row: Mapping[str, Any], adapter: EntityAdapter) -> bool:
    return adapter.named_dealer(row) is None or adapter.named_date(row) is None


def correlate(row: Row, index: LeadIndex, adapter: EntityAdapter) -> Row:
    """Return ``row`` with missing dealer/date copied from its Lead.

    The input row is never modified: enrichment happens on a shallow copy.
    Rows whose identifier is absent from the index come back unchanged.
    """
    if not needs_correlation(row, adapter):
        return row
    lead = index.get(adapter.identifier(row))
    if lead is None:
        return row

    enriched = dict(row)
    if adapter.named_dealer(row) is None:
        dealer = _LEAD.named_dealer(lead)
        if dealer is not None:
            enriched[CORRELATED_DEALER_KEY] = dealer
    if adapter.named_date(row) is None:
        lead_date = _LEAD.named_date(lead)
        if lead_date is not None:
            enriched[CORRELATED_DATE_KEY] = lead_date
    return enriched


def enrich_rows(rows: Iterable[Row], index: LeadIndex, kind: RecordKind) -> list[Row]:
    adapter = adapter_for(kind)
    if not adapter.correlates_to_lead:
        return list(rows)
    return [correlate(row, index, adapter) for row in rows]

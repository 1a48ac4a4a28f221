"""Tests for record kinds, entity adapters, record sets and snapshots."""

from __future__ import annotations

from datetime import date, datetime

from funnel_mcp.analytics.correlation import LeadIndex, correlate, enrich_rows
from funnel_mcp.data.records import (
    DateRange,
    RecordKind,
    RecordSets,
    Snapshot,
    adapter_for,
)


class TestRecordKind:
    def test_sheet_labels_follow_workbook_order(self):
        assert RecordKind.LEAD.sheet_label == "Sheet1"
        assert RecordKind.INVOICE.sheet_label == "Sheet4"
        assert RecordKind.SATISFACTION.sheet_label == "Sheet7"


class TestEntityAdapters:
    def test_named_columns_win(self):
        adapter = adapter_for(RecordKind.TEST_DRIVE)
        row = {"ID": "7", "Modelo": "SUV", "Cor": "Azul", "Loja": "X", "Quando": "x", "Dealer": "Auto Norte"}
        assert adapter.dealer(row) == "Auto Norte"

    def test_test_drive_positional_fallback(self):
        adapter = adapter_for(RecordKind.TEST_DRIVE)
        row = {"ID": "7", "Modelo": "SUV", "Cor": "Azul", "Loja": "Auto Norte", "Quando": "15/03/2024"}
        assert adapter.dealer(row) == "Auto Norte"
        assert adapter.date(row) == datetime(2024, 3, 15)

    def test_invoice_positional_fallback(self):
        adapter = adapter_for(RecordKind.INVOICE)
        row = {
            "NF": "NF-9",
            "Modelo": "SUV",
            "Valor": 1,
            "Emissao": 45366,
            "Vendedor": "Ana",
            "Loja": "Centro Motors",
        }
        assert adapter.dealer(row) == "Centro Motors"
        assert adapter.date(row) == datetime(2024, 3, 15)

    def test_lead_has_no_positional_fallback(self):
        adapter = adapter_for(RecordKind.LEAD)
        row = {"ID": "1", "a": "b", "c": "d", "Loja": "Auto Norte"}
        assert adapter.dealer(row) is None
        assert adapter.date(row) is None

    def test_blank_dealer_is_none(self):
        adapter = adapter_for(RecordKind.LEAD)
        assert adapter.dealer({"NomeDealer": "   "}) is None

    def test_identifier_is_stringified(self):
        adapter = adapter_for(RecordKind.LEAD)
        assert adapter.identifier({"ID": 42}) == "42"
        assert adapter.identifier({"id": " "}) is None

    def test_store_visit_counts(self):
        adapter = adapter_for(RecordKind.STORE_VISIT)
        assert adapter.visit_count({"Loja": "X", "Dia": "01/03/2024", "Qtd": 12}) == 12.0
        assert adapter.visit_count({"Visitas": "7"}) == 7.0
        assert adapter.visit_count({"Loja": "X", "Dia": "01/03/2024", "Qtd": "n/a"}) == 0.0
        assert adapter.date({"Loja": "X", "Dia": "01/03/2024", "Qtd": 1}) == datetime(2024, 3, 1)


class TestRecordSets:
    def test_from_sheets_fills_missing_kinds(self):
        sets = RecordSets.from_sheets([[{"ID": "1"}], [], [{"ID": "1"}]])
        assert len(sets[RecordKind.LEAD]) == 1
        assert sets[RecordKind.INVOICE] == ()
        assert sets[RecordKind.SATISFACTION] == ()
        assert len(sets) == 7

    def test_replace_returns_new_sets(self):
        sets = RecordSets({RecordKind.LEAD: [{"ID": "1"}]})
        updated = sets.replace(lead=[{"ID": "2"}, {"ID": "3"}])
        assert len(updated[RecordKind.LEAD]) == 2
        assert len(sets[RecordKind.LEAD]) == 1

    def test_counts(self):
        sets = RecordSets({RecordKind.LEAD: [{}, {}], RecordKind.INVOICE: [{}]})
        counts = sets.counts()
        assert counts["lead"] == 2
        assert counts["invoice"] == 1
        assert counts["store_visit"] == 0


class TestDateRange:
    def test_empty_range_contains_everything(self):
        assert DateRange().is_empty
        assert DateRange().contains(datetime(1999, 1, 1))

    def test_date_end_bound_covers_whole_day(self):
        date_range = DateRange(start=date(2024, 3, 1), end=date(2024, 3, 15))
        assert date_range.contains(datetime(2024, 3, 15, 18, 30))
        assert date_range.contains(datetime(2024, 3, 1))
        assert not date_range.contains(datetime(2024, 3, 16))
        assert not date_range.contains(datetime(2024, 2, 29, 23, 59))

    def test_open_ended_bounds(self):
        assert DateRange(start=date(2024, 1, 1)).contains(datetime(2030, 1, 1))
        assert not DateRange(end=date(2024, 1, 1)).contains(datetime(2024, 1, 2))


class TestSnapshotSummary:
    def test_summary_shape(self):
        snapshot = Snapshot(
            records=RecordSets({RecordKind.LEAD: [{"ID": "1"}]}),
            period=(datetime(2024, 1, 1), datetime(2024, 1, 31)),
            dealers=("Auto Norte",),
        )
        summary = snapshot.summary()
        assert summary["period"] == {"start": "2024-01-01T00:00:00", "end": "2024-01-31T00:00:00"}
        assert summary["record_counts"]["lead"] == 1
        assert summary["dealer_count"] == 1
        assert "filter_report" not in summary


class TestCorrelation:
    def _index(self):
        return LeadIndex.from_rows([
            {"ID": "1", "NomeDealer": "Auto Norte", "dateSales": "05/01/2024"},
            {"ID": "1", "NomeDealer": "Duplicate", "dateSales": "06/01/2024"},
            {"ID": "2", "NomeDealer": "Centro Motors", "dateSales": "07/01/2024"},
        ])

    def test_first_lead_per_identifier_wins(self):
        index = self._index()
        assert len(index) == 2
        assert index.get("1")["NomeDealer"] == "Auto Norte"

    def test_fills_missing_dealer_and_date(self):
        adapter = adapter_for(RecordKind.JOURNEY)
        row = {"ID": "1", "Dias_Lead_Faturamento": 8}
        enriched = correlate(row, self._index(), adapter)
        assert enriched["Dealer"] == "Auto Norte"
        assert enriched["dateSales"] == "05/01/2024"
        assert adapter.date(enriched) == datetime(2024, 1, 5)
        assert "Dealer" not in row

    def test_keeps_own_values(self):
        adapter = adapter_for(RecordKind.TEST_DRIVE)
        row = {"ID": "2", "NomeDealer": "Serra Car"}
        enriched = correlate(row, self._index(), adapter)
        assert adapter.dealer(enriched) == "Serra Car"
        assert enriched["dateSales"] == "07/01/2024"

    def test_complete_row_is_returned_as_is(self):
        adapter = adapter_for(RecordKind.TEST_DRIVE)
        row = {"ID": "2", "NomeDealer": "Serra Car", "Data": "01/01/2024"}
        assert correlate(row, self._index(), adapter) is row

    def test_unknown_identifier_unchanged(self):
        adapter = adapter_for(RecordKind.TEST_DRIVE)
        row = {"ID": "99", "Modelo": "SUV"}
        assert correlate(row, self._index(), adapter) is row

    def test_enrich_rows_skips_non_correlating_kinds(self):
        rows = [{"ID": "1", "Modelo": "SUV"}]
        assert enrich_rows(rows, self._index(), RecordKind.INVOICE) == rows
        enriched = enrich_rows(rows, self._index(), RecordKind.TEST_DRIVE)
        assert enriched[0]["Dealer"] == "Auto Norte"

#!/usr/bin/env python3
"""Performance benchmark for funnel filtering and aggregation hot paths."""

from __future__ import annotations

import argparse
import time
from datetime import date
from io import BytesIO

from openpyxl import Workbook

from funnel_mcp.analytics.comparison import compare_by_dealer
from funnel_mcp.analytics.filters import apply_filters, filter_options
from funnel_mcp.analytics.metrics import aggregate
from funnel_mcp.data.records import DateRange, RecordKind, RecordSets
from funnel_mcp.ingestion.pipeline import build_snapshot, load_workbook_bytes

DEALERS = ["Concessionária Sul", "Auto Norte", "Centro Motors", "Litoral Veículos", "Serra Car"]


def make_lead(i: int) -> dict:
    return {
        "ID": f"L{i:07d}",
        "NomeDealer": DEALERS[i % 5],
        "dateSales": f"{1 + i % 28:02d}/{1 + i % 12:02d}/2024",
        "Flag_TestDrive": 1 if i % 3 == 0 else 0,
        "Flag_Faturado": 1 if i % 7 == 0 else 0,
        "Dias_Lead_TestDrive": i % 15 if i % 3 == 0 else None,
        "Dias_Lead_Faturamento": i % 40 if i % 7 == 0 else None,
    }


def make_test_drive(i: int) -> dict:
    # No dealer/date of its own: resolved through the lead.
    return {
        "ID": f"L{i * 3:07d}",
        "Modelo": "SUV",
        "Flag_Faturado": 1 if i % 4 == 0 else 0,
        "Dias_TestDrive_Faturamento": i % 20 if i % 4 == 0 else None,
    }


def make_journey(i: int) -> dict:
    return {"ID": f"L{i * 7:07d}", "Dias_Lead_Faturamento": i % 40}


def make_invoice(i: int) -> dict:
    return {
        "NF": f"NF{i:07d}",
        "Modelo": "SUV",
        "Valor": 150_000,
        "Data": f"{1 + i % 28:02d}/{1 + i % 12:02d}/2024",
        "Vendedor": "Benchmark",
        "Dealer": DEALERS[i % 5],
    }


def _make_records(leads: int) -> RecordSets:
    return RecordSets({
        RecordKind.LEAD: [make_lead(i) for i in range(leads)],
        RecordKind.TEST_DRIVE: [make_test_drive(i) for i in range(leads // 3)],
        RecordKind.JOURNEY: [make_journey(i) for i in range(leads // 7)],
        RecordKind.INVOICE: [make_invoice(i) for i in range(leads // 6)],
    })


def _make_workbook(records: RecordSets) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for kind in (RecordKind.LEAD, RecordKind.TEST_DRIVE, RecordKind.JOURNEY, RecordKind.INVOICE):
        sheet = workbook.create_sheet(kind.sheet_label)
        rows = records[kind]
        headers = list(rows[0])
        sheet.append(headers)
        for row in rows:
            sheet.append([row.get(h) for h in headers])
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ── Benchmarks ────────────────────────────────────────────────────────


def bench_workbook_load(records: RecordSets) -> tuple[float, int]:
    data = _make_workbook(records)
    start = time.perf_counter()
    snapshot = load_workbook_bytes(data)
    elapsed = time.perf_counter() - start
    return elapsed, len(snapshot.records[RecordKind.LEAD])


def bench_aggregate(records: RecordSets, repeats: int) -> float:
    start = time.perf_counter()
    for _ in range(repeats):
        aggregate(records)
    return time.perf_counter() - start


def bench_filters(records: RecordSets, repeats: int) -> dict[str, float]:
    snapshot = build_snapshot(records)

    start = time.perf_counter()
    for _ in range(repeats):
        apply_filters(snapshot, filter_options())
    empty_elapsed = time.perf_counter() - start

    start = time.perf_counter()
    for i in range(repeats):
        apply_filters(
            snapshot,
            filter_options(start=date(2024, 3, 1), end=date(2024, 8, 31), dealers=[DEALERS[i % 5]]),
        )
    filtered_elapsed = time.perf_counter() - start

    return {"empty": empty_elapsed, "date_and_dealer": filtered_elapsed}


def bench_compare(records: RecordSets, repeats: int) -> float:
    snapshot = build_snapshot(records)
    start = time.perf_counter()
    for _ in range(repeats):
        compare_by_dealer(snapshot, DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31)))
    return time.perf_counter() - start


# ── Main ──────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark funnel hot paths.")
    parser.add_argument("--leads", type=int, default=20_000)
    parser.add_argument("--repeats", type=int, default=20)
    args = parser.parse_args()

    print("funnel_hot_path_benchmark")
    print(f"leads={args.leads}")
    print(f"repeats={args.repeats}")
    print()

    records = _make_records(args.leads)

    load_elapsed, lead_rows = bench_workbook_load(records)
    print(f"workbook_load_seconds={load_elapsed:.6f}")
    print(f"workbook_load_lead_rows={lead_rows}")

    aggregate_elapsed = bench_aggregate(records, args.repeats)
    print(f"aggregate_ms_per_call={aggregate_elapsed / max(args.repeats, 1) * 1000:.3f}")

    filter_times = bench_filters(records, args.repeats)
    for name, elapsed in filter_times.items():
        print(f"filter_{name}_ms_per_call={elapsed / max(args.repeats, 1) * 1000:.3f}")

    compare_elapsed = bench_compare(records, args.repeats)
    print(f"compare_ms_per_call={compare_elapsed / max(args.repeats, 1) * 1000:.3f}")


if __name__ == "__main__":
    main()

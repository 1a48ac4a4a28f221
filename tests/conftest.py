"""Shared test fixtures — sample record sets, in-memory workbooks, session reset."""

from __future__ import annotations

from io import BytesIO
from typing import Any

import pytest
from openpyxl import Workbook

from funnel_mcp.data.records import RecordKind, RecordSets, Snapshot
from funnel_mcp.data.session import set_session
from funnel_mcp.ingestion.pipeline import build_snapshot
from funnel_mcp.server import set_config_override

LEAD_ROWS: list[dict[str, Any]] = [
    {
        "ID": "1",
        "NomeDealer": "Concessionária Sul (462011)",
        "dateSales": "05/01/2024",
        "Flag_TestDrive": 1,
        "Flag_Faturado": 1,
        "Dias_Lead_TestDrive": 3,
        "Dias_Lead_Faturamento": 8,
    },
    {
        "ID": "2",
        "NomeDealer": "Auto Norte",
        "dateSales": "20/01/2024",
        "Flag_TestDrive": 1,
        "Flag_Faturado": 0,
        "Dias_Lead_TestDrive": 5,
        "Dias_Lead_Faturamento": None,
    },
    {
        "ID": "3",
        "NomeDealer": "concessionaria  sul",
        "dateSales": "10/02/2024",
        "Flag_TestDrive": 0,
        "Flag_Faturado": 1,
        "Dias_Lead_TestDrive": None,
        "Dias_Lead_Faturamento": 20,
    },
    {
        "ID": "4",
        "NomeDealer": "Auto Norte",
        "dateSales": "15/02/2024",
        "Flag_TestDrive": 0,
        "Flag_Faturado": 0,
        "Dias_Lead_TestDrive": None,
        "Dias_Lead_Faturamento": None,
    },
    {
        "ID": "5",
        "NomeDealer": "Centro Motors",
        "dateSales": "sem data",
        "Flag_TestDrive": 0,
        "Flag_Faturado": 0,
        "Dias_Lead_TestDrive": None,
        "Dias_Lead_Faturamento": None,
    },
]

# No dealer or date of their own: both come from the matching lead.
TEST_DRIVE_ROWS: list[dict[str, Any]] = [
    {"ID": "1", "Modelo": "SUV", "Flag_Faturado": 1},
    {"ID": "2", "Modelo": "Sedan", "Flag_Faturado": 0},
    {"ID": "99", "Modelo": "Hatch", "Flag_Faturado": 0},
]

JOURNEY_ROWS: list[dict[str, Any]] = [
    {"ID": "1", "Dias_Lead_Faturamento": 8},
]

INVOICE_ROWS: list[dict[str, Any]] = [
    {
        "NF": "NF-001",
        "Modelo": "SUV",
        "Valor": 150000,
        "Data": "08/01/2024",
        "Vendedor": "Ana",
        "Dealer": "Concessionária Sul",
    },
    {
        "NF": "NF-002",
        "Modelo": "Sedan",
        "Valor": 120000,
        "Data": "12/02/2024",
        "Vendedor": "Bruno",
        "Dealer": "Concessionaria Sul",
    },
]


@pytest.fixture(autouse=True)
def _reset_session():
    """Every test starts with no loaded data and the environment config."""
    set_session(None)
    set_config_override(None)
    yield
    set_session(None)
    set_config_override(None)


@pytest.fixture()
def sample_rows() -> dict[RecordKind, list[dict[str, Any]]]:
    """Fresh copies of the sample rows, keyed by record kind."""
    return {
        RecordKind.LEAD: [dict(r) for r in LEAD_ROWS],
        RecordKind.TEST_DRIVE: [dict(r) for r in TEST_DRIVE_ROWS],
        RecordKind.JOURNEY: [dict(r) for r in JOURNEY_ROWS],
        RecordKind.INVOICE: [dict(r) for r in INVOICE_ROWS],
    }


@pytest.fixture()
def funnel_records(sample_rows) -> RecordSets:
    return RecordSets(sample_rows)


@pytest.fixture()
def funnel_snapshot(funnel_records: RecordSets) -> Snapshot:
    return build_snapshot(funnel_records)


def _rows_to_table(rows: list[dict[str, Any]]) -> list[list[Any]]:
    headers = list(rows[0])
    return [headers] + [[row.get(h) for h in headers] for row in rows]


def make_workbook_bytes(sheets: list[list[list[Any]]]) -> bytes:
    """Build an .xlsx in memory; each sheet is a list of rows, header first."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for index, rows in enumerate(sheets, start=1):
        sheet = workbook.create_sheet(f"Sheet{index}")
        for row in rows:
            sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def workbook_bytes():
    return make_workbook_bytes


@pytest.fixture()
def funnel_workbook() -> bytes:
    return make_workbook_bytes([
        _rows_to_table(LEAD_ROWS),
        _rows_to_table(TEST_DRIVE_ROWS),
        _rows_to_table(JOURNEY_ROWS),
        _rows_to_table(INVOICE_ROWS),
    ])

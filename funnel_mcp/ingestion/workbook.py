"""Workbook reader: every sheet becomes a list of header-keyed row dicts."""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from funnel_mcp.errors import SchemaError

logger = logging.getLogger(__name__)

MIN_SHEETS = 3

WorkbookSource = bytes | bytearray | BinaryIO | str | Path


def _header_names(raw_headers: tuple[Any, ...]) -> list[str]:
    """Blank headers become ``__EMPTY``/``__EMPTY_1``…; duplicates get ``_1``, ``_2``."""
    names: list[str] = []
    seen: dict[str, int] = {}
    empty_count = 0
    for raw in raw_headers:
        text = "" if raw is None else str(raw).strip()
        if not text:
            text = "__EMPTY" if empty_count == 0 else f"__EMPTY_{empty_count}"
            empty_count += 1
        if text in seen:
            seen[text] += 1
            text = f"{text}_{seen[text]}"
        else:
            seen[text] = 0
        names.append(text)
    return names


def _sheet_rows(worksheet: Any) -> list[dict[str, Any]]:
    rows_iter = worksheet.iter_rows(values_only=True)
    header = next(rows_iter, None)
    if header is None:
        return []
    names = _header_names(header)

    rows: list[dict[str, Any]] = []
    for values in rows_iter:
        if values is None or all(v is None or v == "" for v in values):
            continue
        padded = list(values) + [None] * (len(names) - len(values))
        rows.append(dict(zip(names, padded)))
    return rows


def _open(source: WorkbookSource) -> Any:
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)
    try:
        return load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise SchemaError(
            "The uploaded file is not a readable workbook.",
            code="INVALID_WORKBOOK",
            details={"error": str(exc)},
        ) from exc


def read_sheets(source: WorkbookSource) -> list[list[dict[str, Any]]]:
    """Return every sheet's rows, in workbook order."""
    workbook = _open(source)
    try:
        return [_sheet_rows(ws) for ws in workbook.worksheets]
    finally:
        workbook.close()


def read_first_sheet(source: WorkbookSource) -> list[dict[str, Any]]:
    sheets = read_sheets(source)
    return sheets[0] if sheets else []


def read_funnel_workbook(source: WorkbookSource) -> list[list[dict[str, Any]]]:
    """Read a funnel workbook and enforce its minimum structure."""
    sheets = read_sheets(source)
    if len(sheets) < MIN_SHEETS:
        raise SchemaError(
            f"The workbook needs at least {MIN_SHEETS} sheets (leads, test drives, "
            f"complete journeys); found {len(sheets)}.",
            code="TOO_FEW_SHEETS",
            details={"sheet_count": len(sheets)},
        )
    if not sheets[0]:
        raise SchemaError(
            "The first sheet (leads) has no data rows.",
            code="EMPTY_PRIMARY_SHEET",
        )
    logger.info("Read workbook with %d sheets (%s rows)", len(sheets), [len(s) for s in sheets])
    return sheets

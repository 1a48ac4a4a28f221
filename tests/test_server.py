"""Tests for the MCP tool wrappers and their implementations."""

from __future__ import annotations

import asyncio
import base64
import json
from datetime import date, datetime

from funnel_mcp.config import FunnelConfig
from funnel_mcp.constants import NATIONAL_AVERAGE_LABEL
from funnel_mcp.data.session import get_session
from funnel_mcp.server import (
    compare_dealers,
    get_funnel_metrics,
    list_dealers,
    load_from_api,
    load_workbook,
    set_config_override,
)
from funnel_mcp.tools import loading
from funnel_mcp.tools.funnel import parse_bound


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


async def _load(funnel_workbook: bytes) -> dict:
    return json.loads(await load_workbook(content_base64=_b64(funnel_workbook)))


class TestLoadWorkbookTool:
    async def test_load_from_base64(self, funnel_workbook: bytes):
        payload = await _load(funnel_workbook)
        assert payload["source"] == "upload"
        assert payload["record_counts"]["lead"] == 5
        assert payload["period"] == {"start": "2024-01-05T00:00:00", "end": "2024-02-15T00:00:00"}
        assert payload["metrics"]["total_invoiced"] == 2
        assert get_session() is not None

    async def test_upload_is_parsed_off_the_event_loop(self, monkeypatch, funnel_workbook: bytes):
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def _to_thread(func, /, *args, **kwargs):
            offloaded.append(func.__name__)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(loading.asyncio, "to_thread", _to_thread)
        await _load(funnel_workbook)
        assert offloaded == ["load_workbook_bytes"]

    async def test_load_from_path(self, tmp_path, funnel_workbook: bytes):
        path = tmp_path / "funil.xlsx"
        path.write_bytes(funnel_workbook)
        payload = json.loads(await load_workbook(path=str(path)))
        assert payload["source"] == str(path)
        assert payload["dealer_count"] == 3

    async def test_requires_exactly_one_source(self):
        assert "exactly one" in await load_workbook()
        assert "exactly one" in await load_workbook(path="a.xlsx", content_base64="AAAA")

    async def test_missing_file(self, tmp_path):
        result = await load_workbook(path=str(tmp_path / "nope.xlsx"))
        assert "not found" in result

    async def test_invalid_base64(self):
        assert "not valid base64" in await load_workbook(content_base64="***")

    async def test_schema_error_message_is_returned(self, workbook_bytes):
        data = workbook_bytes([[["ID"], ["1"]]])
        result = await load_workbook(content_base64=_b64(data))
        assert "at least 3 sheets" in result
        assert get_session() is None

    async def test_unreadable_workbook(self):
        result = await load_workbook(content_base64=_b64(b"plain text"))
        assert "not a readable workbook" in result


class TestLoadFromApiTool:
    async def test_unconfigured_endpoints(self):
        set_config_override(FunnelConfig())
        result = await load_from_api()
        assert "is not configured" in result
        assert get_session() is None


class TestAnalyticsTools:
    def test_tools_require_loaded_data(self):
        assert "No funnel data is loaded" in list_dealers()
        assert "No funnel data is loaded" in get_funnel_metrics()
        assert "No funnel data is loaded" in compare_dealers()

    async def test_list_dealers(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        payload = json.loads(list_dealers())
        assert payload["count"] == 3
        assert "Auto Norte" in payload["dealers"]

    async def test_get_funnel_metrics_unfiltered(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        payload = json.loads(get_funnel_metrics())
        assert payload["metrics"]["leads"] == 5
        assert payload["filters"] == {"start": None, "end": None, "dealers": []}

    async def test_get_funnel_metrics_filtered(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        payload = json.loads(
            get_funnel_metrics(start="2024-01-01", end="31/01/2024", dealers=["concessionaria sul"])
        )
        assert payload["metrics"]["leads"] == 1
        assert payload["metrics"]["test_drives"] == 1
        assert payload["metrics"]["invoices"] == 1
        assert payload["filter_report"]["lead"]["kept"] == 1
        assert get_session().last_options.selected_dealers == ("concessionaria sul",)

    async def test_filters_always_start_from_original(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        get_funnel_metrics(dealers=["Auto Norte"])
        payload = json.loads(get_funnel_metrics())
        assert payload["metrics"]["leads"] == 5

    async def test_bad_dates(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        assert "not a recognizable date" in get_funnel_metrics(start="someday")
        assert "must not be after" in get_funnel_metrics(start="2024-02-01", end="2024-01-01")

    async def test_compare_dealers(self, funnel_workbook: bytes):
        await _load(funnel_workbook)
        payload = json.loads(compare_dealers(start="2024-01-01", end="2024-12-31"))
        assert payload["national_average"]["dealer_name"] == NATIONAL_AVERAGE_LABEL
        assert payload["national_average"]["leads"] == 4
        names = [d["dealer_name"] for d in payload["dealers"]]
        assert names[:2] == ["Concessionária Sul (462011)", "Auto Norte"]


class TestParseBound:
    def test_plain_dates_stay_dates(self):
        assert parse_bound("2024-03-15", name="end") == date(2024, 3, 15)
        assert parse_bound("15/03/2024", name="end") == date(2024, 3, 15)
        assert parse_bound("2024-03-15T10:00:00", name="end") == datetime(2024, 3, 15, 10)
        assert parse_bound("  ", name="end") is None

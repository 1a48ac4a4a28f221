"""Funnel analytics MCP server — FastMCP entry point."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from funnel_mcp.config import FunnelConfig, load_config
from funnel_mcp.errors import log_and_return_tool_error as _log_and_return_tool_error
from funnel_mcp.tools.funnel import (
    compare_dealers_impl,
    get_funnel_metrics_impl,
    list_dealers_impl,
)
from funnel_mcp.tools.loading import load_from_api_impl, load_workbook_impl

# Load .env from project root (no extra dependency)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
if _ENV_FILE.is_file():
    for line in _ENV_FILE.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())

mcp = FastMCP("FunnelAnalytics")
logger = logging.getLogger(__name__)

_config_override: FunnelConfig | None = None


def set_config_override(config: FunnelConfig | None) -> None:
    """Inject a config for testing; ``None`` goes back to the environment."""
    global _config_override  # noqa: PLW0603
    _config_override = config


def _get_config() -> FunnelConfig:
    if _config_override is not None:
        return _config_override
    return load_config()


@mcp.tool()
async def load_workbook(path: str = "", content_base64: str = "") -> str:
    """Load a funnel workbook (.xlsx) and replace the current data.

    Sheets in order: leads, test drives, complete journeys, invoices, store
    visits, customer mix, satisfaction.  Only the first three are required.
    Pass either a local path or the file as base64.
    """
    try:
        return await load_workbook_impl(
            _get_config(),
            path=path,
            content_base64=content_base64,
        )
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="load_workbook",
            exc=exc,
            user_message="I could not read that workbook. Please check the file and try again.",
        )


@mcp.tool()
async def load_from_api(store_visits_path: str = "") -> str:
    """Fetch every record set from the configured endpoints and replace the current data.

    store_visits_path: optional local workbook whose first sheet holds store visits
    """
    try:
        return await load_from_api_impl(_get_config(), store_visits_path=store_visits_path)
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="load_from_api",
            exc=exc,
            user_message=(
                "I am having trouble reaching the funnel data endpoints right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
def list_dealers() -> str:
    """List the dealer names found in the loaded data."""
    try:
        return list_dealers_impl()
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="list_dealers",
            exc=exc,
            user_message="I am having trouble listing dealers right now.",
        )


@mcp.tool()
def get_funnel_metrics(
    start: str = "",
    end: str = "",
    dealers: list[str] | None = None,
) -> str:
    """Funnel conversion metrics for the loaded data.

    start/end: optional inclusive bounds (YYYY-MM-DD or dd/mm/yyyy)
    dealers: optional dealer names; empty means every dealer
    """
    try:
        return get_funnel_metrics_impl(start=start, end=end, dealers=dealers)
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="get_funnel_metrics",
            exc=exc,
            user_message="I am having trouble computing funnel metrics right now.",
        )


@mcp.tool()
def compare_dealers(start: str = "", end: str = "") -> str:
    """Compare funnel conversion across dealers, with the national average row."""
    try:
        return compare_dealers_impl(start=start, end=end)
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return _log_and_return_tool_error(
            tool_name="compare_dealers",
            exc=exc,
            user_message="I am having trouble comparing dealers right now.",
        )


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("FUNNEL_LOG_LEVEL", "INFO").upper())
    mcp.run()

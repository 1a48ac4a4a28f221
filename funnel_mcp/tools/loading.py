"""Data loading tool implementations for spreadsheet and remote API modes."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
from pathlib import Path
from typing import Any

from funnel_mcp.config import FunnelConfig
from funnel_mcp.data.records import Snapshot
from funnel_mcp.data.session import FunnelSession, set_session
from funnel_mcp.ingestion.pipeline import (
    LoadStatus,
    load_from_api,
    load_workbook_bytes,
    load_workbook_file,
)


def _loaded_payload(snapshot: Snapshot, *, source: str, **extra: Any) -> str:
    payload: dict[str, Any] = {"source": source, **snapshot.summary()}
    payload["dealers"] = list(snapshot.dealers)
    payload["metrics"] = snapshot.metrics.to_dict() if snapshot.metrics else None
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=False)


async def load_workbook_impl(
    config: FunnelConfig,
    *,
    path: str = "",
    content_base64: str = "",
) -> str:
    """Load a funnel workbook from a local path or base64-encoded bytes."""
    path = path.strip()
    content_base64 = content_base64.strip()
    if bool(path) == bool(content_base64):
        raise ValueError("Provide exactly one of path or content_base64.")

    if path:
        workbook_path = Path(path).expanduser()
        if not workbook_path.is_file():
            raise ValueError(f"Workbook not found: {path}")
        snapshot = await load_workbook_file(workbook_path, config.aggregation)
        source = str(workbook_path)
    else:
        try:
            data = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("content_base64 is not valid base64.") from exc
        snapshot = await asyncio.to_thread(load_workbook_bytes, data, config.aggregation)
        source = "upload"

    set_session(FunnelSession(original=snapshot, source=source, aggregation=config.aggregation))
    return _loaded_payload(snapshot, source=source)


async def load_from_api_impl(
    config: FunnelConfig,
    *,
    store_visits_path: str = "",
) -> str:
    """Fetch every configured endpoint and replace the loaded session."""
    statuses: list[str] = []

    def _record(status: LoadStatus) -> None:
        statuses.append(status.value)

    store_visits = Path(store_visits_path).expanduser() if store_visits_path.strip() else None
    snapshot = await load_from_api(config, store_visits=store_visits, on_status=_record)

    set_session(FunnelSession(original=snapshot, source="api", aggregation=config.aggregation))
    return _loaded_payload(snapshot, source="api", load_statuses=statuses)

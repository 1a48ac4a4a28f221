"""Funnel ingestion pipeline: turns a workbook or remote endpoints into a snapshot.

Both modes end in :func:`build_snapshot`, which computes the observed period
from Lead dates, the dealer catalog, and the initial metrics.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from funnel_mcp.analytics.dealers import extract_dealers
from funnel_mcp.analytics.metrics import DEFAULT_AGGREGATION, AggregationConfig, aggregate
from funnel_mcp.clients.sheets import ResponseCache, SheetEndpointClient
from funnel_mcp.config import ENDPOINT_ENV_VARS, REQUIRED_ENDPOINTS, FunnelConfig
from funnel_mcp.data.records import RecordKind, RecordSets, Row, Snapshot, adapter_for
from funnel_mcp.dates import period_of
from funnel_mcp.ingestion.workbook import WorkbookSource, read_first_sheet, read_funnel_workbook

logger = logging.getLogger(__name__)


class LoadStatus(str, enum.Enum):
    LOADING = "loading"
    PARTIAL = "partial"
    COMPLETE = "complete"


StatusCallback = Callable[[LoadStatus], None]


def observed_period(lead_rows: Iterable[Row]):
    adapter = adapter_for(RecordKind.LEAD)
    dates = [d for d in (adapter.date(row) for row in lead_rows) if d is not None]
    return period_of(dates)


def build_snapshot(
    records: RecordSets,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> Snapshot:
    snapshot = Snapshot(
        records=records,
        period=observed_period(records[RecordKind.LEAD]),
        dealers=tuple(extract_dealers(records)),
        metrics=aggregate(records, config),
    )
    logger.info("Built snapshot: %s", records.counts())
    return snapshot


# ── Spreadsheet mode ────────────────────────────────────────────────


def load_workbook_bytes(
    source: WorkbookSource,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> Snapshot:
    """Parse a funnel workbook; sheet N maps to the N-th record kind."""
    sheets = read_funnel_workbook(source)
    return build_snapshot(RecordSets.from_sheets(sheets), config)


async def load_workbook_file(
    path: str | Path,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> Snapshot:
    """Async wrapper that reads and parses the workbook off the event loop."""
    data = await asyncio.to_thread(Path(path).read_bytes)
    return await asyncio.to_thread(load_workbook_bytes, data, config)


# ── API mode ────────────────────────────────────────────────────────


class ApiLoader:
    """Fetch every configured record set concurrently and build a snapshot."""

    def __init__(
        self,
        config: FunnelConfig,
        *,
        cache: ResponseCache | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.config = config
        self.cache = cache or ResponseCache(ttl=config.cache_ttl)
        self._on_status = on_status
        self.stats: dict[str, Any] = {}

    def _emit(self, status: LoadStatus) -> None:
        logger.info("Load status: %s", status.value)
        if self._on_status is not None:
            self._on_status(status)

    def _remote_kinds(self) -> list[RecordKind]:
        return [
            kind
            for kind in ENDPOINT_ENV_VARS
            if kind in REQUIRED_ENDPOINTS or kind in self.config.endpoints
        ]

    async def _fetch_remote(self, client: SheetEndpointClient) -> dict[RecordKind, list[Row]]:
        kinds = self._remote_kinds()
        results = await asyncio.gather(
            *(
                client.fetch_rows(ENDPOINT_ENV_VARS[kind], self.config.endpoints.get(kind))
                for kind in kinds
            )
        )
        return dict(zip(kinds, results))

    async def _read_store_visits(self, source: WorkbookSource | None) -> list[Row]:
        if source is None:
            source = self.config.store_visits_path
        if source is None:
            return []
        if isinstance(source, (str, Path)):
            source = await asyncio.to_thread(Path(source).read_bytes)
        return await asyncio.to_thread(read_first_sheet, source)

    async def load(self, store_visits: WorkbookSource | None = None) -> Snapshot:
        """Run the load.  Any endpoint failure aborts the whole load."""
        self._emit(LoadStatus.LOADING)
        async with SheetEndpointClient(
            cache=self.cache,
            timeout=self.config.request_timeout,
        ) as client:
            sets = await self._fetch_remote(client)
        self._emit(LoadStatus.PARTIAL)

        sets[RecordKind.STORE_VISIT] = await self._read_store_visits(store_visits)
        records = RecordSets(sets)
        self.stats = {"record_counts": records.counts()}

        snapshot = build_snapshot(records, self.config.aggregation)
        self._emit(LoadStatus.COMPLETE)
        return snapshot


async def load_from_api(
    config: FunnelConfig,
    *,
    store_visits: WorkbookSource | None = None,
    cache: ResponseCache | None = None,
    on_status: StatusCallback | None = None,
) -> Snapshot:
    loader = ApiLoader(config, cache=cache, on_status=on_status)
    return await loader.load(store_visits)

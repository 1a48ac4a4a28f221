"""Async client for the JSON endpoints that serve the funnel record sets."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import aiohttp

from funnel_mcp.errors import UpstreamFetchError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0
_CACHE_TTL_SECONDS = 300  # 5 minutes


class ResponseCache:
    """In-memory cache of decoded payloads keyed by endpoint, with per-entry TTL.

    One instance is meant to live for one load; pass the same instance to
    several loads only when stale data is acceptable.
    """

    def __init__(self, ttl: float = _CACHE_TTL_SECONDS) -> None:
        self._store: dict[str, tuple[float, Any]] = {}
        self._ttl = ttl

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        if time.monotonic() - ts > self._ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None


def extract_rows(payload: Any) -> list[dict[str, Any]]:
    """Unwrap the row array from any of the envelopes upstream services use.

    Tried in order: bare array, ``{"ResultSets": {"Table1": [...]}}``,
    ``{"data": [...]}``, ``{"Result": [...]}``.  Anything else is empty.
    """
    rows: Any = None
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, dict):
        result_sets = payload.get("ResultSets")
        if isinstance(result_sets, dict) and isinstance(result_sets.get("Table1"), list):
            rows = result_sets["Table1"]
        elif isinstance(payload.get("data"), list):
            rows = payload["data"]
        elif isinstance(payload.get("Result"), list):
            rows = payload["Result"]
    if rows is None:
        return []
    return [r for r in rows if isinstance(r, dict)]


class SheetEndpointClient:
    """Fetch record sets from configured URLs over one shared aiohttp session."""

    def __init__(
        self,
        *,
        cache: ResponseCache | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session: aiohttp.ClientSession | None = None
        self._cache = cache or ResponseCache()
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> SheetEndpointClient:
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    async def fetch_payload(self, name: str, url: str | None) -> Any:
        """GET ``url`` and return its decoded JSON body.

        A 2xx body that is empty or not JSON decodes to ``None``.
        """
        if not self.session:
            raise RuntimeError("Client not entered as context manager")
        if not url:
            raise UpstreamFetchError(
                f"Endpoint for {name} is not configured.",
                code="ENDPOINT_NOT_CONFIGURED",
                details={"endpoint": name},
            )

        cache_key = f"{name}|{url}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            async with self.session.get(url, timeout=self._timeout) as resp:
                raw_text = (await resp.read()).decode("utf-8", errors="replace")
                if resp.status < 200 or resp.status >= 300:
                    logger.error("Upstream %s returned %s: %s", name, resp.status, raw_text[:500])
                    raise UpstreamFetchError(
                        f"Upstream {name} returned HTTP {resp.status}.",
                        code="UPSTREAM_HTTP_ERROR",
                        status=resp.status,
                        details={"endpoint": name, "body": raw_text[:500]},
                    )
        except UpstreamFetchError:
            raise
        except TimeoutError as exc:
            raise UpstreamFetchError(
                f"Upstream {name} timed out.",
                code="TIMEOUT",
                details={"endpoint": name},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.error("Upstream %s client error: %s", name, exc)
            raise UpstreamFetchError(
                f"Upstream {name} failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"endpoint": name, "error": str(exc)},
            ) from exc

        payload: Any = None
        if raw_text:
            try:
                payload = json.loads(raw_text)
            except json.JSONDecodeError:
                logger.warning("Upstream %s returned a non-JSON body; treating as empty", name)
        else:
            logger.warning("Upstream %s returned an empty body; treating as empty", name)

        if payload is not None:
            self._cache.set(cache_key, payload)
        return payload

    async def fetch_rows(self, name: str, url: str | None) -> list[dict[str, Any]]:
        payload = await self.fetch_payload(name, url)
        rows = extract_rows(payload)
        if payload is not None and not rows and not isinstance(payload, list):
            logger.warning("Upstream %s payload matched no known envelope", name)
        logger.info("Fetched %d rows from %s", len(rows), name)
        return rows

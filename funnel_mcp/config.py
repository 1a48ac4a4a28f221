"""Runtime configuration for the funnel loader and aggregators."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from funnel_mcp.analytics.metrics import AggregationConfig, InvoiceCountPolicy
from funnel_mcp.constants import DEFAULT_DECIDED_QUICKLY_DAYS
from funnel_mcp.data.records import RecordKind

# Environment variable per remote record set.  StoreVisit has no endpoint.
ENDPOINT_ENV_VARS: dict[RecordKind, str] = {
    RecordKind.LEAD: "SHEET1_URL",
    RecordKind.TEST_DRIVE: "SHEET2_URL",
    RecordKind.JOURNEY: "SHEET3_URL",
    RecordKind.INVOICE: "SHEET4_URL",
    RecordKind.CUSTOMER_MIX: "SHEET6_URL",
    RecordKind.SATISFACTION: "SHEET7_URL",
}

REQUIRED_ENDPOINTS: frozenset[RecordKind] = frozenset({
    RecordKind.LEAD,
    RecordKind.TEST_DRIVE,
    RecordKind.JOURNEY,
    RecordKind.INVOICE,
})


@dataclass(frozen=True)
class FunnelConfig:
    endpoints: dict[RecordKind, str] = field(default_factory=dict)
    store_visits_path: Path | None = None
    request_timeout: float = 30.0
    cache_ttl: float = 300.0
    invoice_policy: InvoiceCountPolicy = InvoiceCountPolicy.PREFER_INVOICE_SET
    decided_quickly_days: float = DEFAULT_DECIDED_QUICKLY_DAYS

    @property
    def aggregation(self) -> AggregationConfig:
        return AggregationConfig(
            invoice_policy=self.invoice_policy,
            decided_quickly_days=self.decided_quickly_days,
        )


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_config(env: Mapping[str, str] | None = None) -> FunnelConfig:
    """Build a :class:`FunnelConfig` from environment variables."""
    env = os.environ if env is None else env

    endpoints = {
        kind: env[var].strip()
        for kind, var in ENDPOINT_ENV_VARS.items()
        if env.get(var, "").strip()
    }

    policy_raw = env.get("FUNNEL_INVOICE_POLICY", "").strip().lower()
    try:
        policy = InvoiceCountPolicy(policy_raw) if policy_raw else InvoiceCountPolicy.PREFER_INVOICE_SET
    except ValueError as exc:
        valid = ", ".join(p.value for p in InvoiceCountPolicy)
        raise ValueError(f"FUNNEL_INVOICE_POLICY must be one of: {valid}.") from exc

    visits_path = env.get("FUNNEL_STORE_VISITS_PATH", "").strip()

    return FunnelConfig(
        endpoints=endpoints,
        store_visits_path=Path(visits_path) if visits_path else None,
        request_timeout=_env_float(env, "FUNNEL_REQUEST_TIMEOUT", 30.0),
        cache_ttl=_env_float(env, "FUNNEL_CACHE_TTL", 300.0),
        invoice_policy=policy,
        decided_quickly_days=_env_float(env, "FUNNEL_DECIDED_DAYS", DEFAULT_DECIDED_QUICKLY_DAYS),
    )

"""Funnel metrics aggregation over one set of (possibly filtered) record sets."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from funnel_mcp.constants import (
    DAYS_LEAD_TO_INVOICE_KEYS,
    DAYS_LEAD_TO_TEST_DRIVE_KEYS,
    DAYS_TEST_DRIVE_TO_INVOICE_KEYS,
    DEFAULT_DECIDED_QUICKLY_DAYS,
    FLAG_INVOICED_KEYS,
    FLAG_TEST_DRIVE_KEYS,
    PERCENT_NEW_KEYS,
    PERCENT_RETURNING_KEYS,
    RESPONSE_COUNT_KEYS,
    SATISFACTION_KEYS,
    SURVEY_CAR_HANDOVER,
    SURVEY_EVENT_KEYS,
    SURVEY_TEST_DRIVE,
)
from funnel_mcp.data.records import RecordKind, RecordSets, Row, adapter_for
from funnel_mcp.normalization import is_flag_set, parse_elapsed_days, parse_float, resolve


class InvoiceCountPolicy(str, enum.Enum):
    """How ``total_invoiced`` combines the Invoice set with Lead/TestDrive flags."""

    PREFER_INVOICE_SET = "prefer_invoice_set"
    INVOICE_SET_ONLY = "invoice_set_only"
    FLAGS_ONLY = "flags_only"


@dataclass(frozen=True)
class AggregationConfig:
    invoice_policy: InvoiceCountPolicy = InvoiceCountPolicy.PREFER_INVOICE_SET
    decided_quickly_days: float = DEFAULT_DECIDED_QUICKLY_DAYS


DEFAULT_AGGREGATION = AggregationConfig()


def safe_rate(numerator: float, denominator: float) -> float:
    """Percentage ``numerator / denominator``; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100


def mean_or_none(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def resolve_total_invoiced(
    invoices: int,
    leads_invoiced: int,
    test_drives_invoiced: int,
    policy: InvoiceCountPolicy,
) -> int:
    flags_total = leads_invoiced + test_drives_invoiced
    if policy is InvoiceCountPolicy.INVOICE_SET_ONLY:
        return invoices
    if policy is InvoiceCountPolicy.FLAGS_ONLY:
        return flags_total
    return invoices if invoices > 0 else flags_total


def count_flagged(rows: Iterable[Row], keys: Sequence[str]) -> int:
    return sum(1 for row in rows if is_flag_set(resolve(row, keys)))


def count_direct_invoiced(lead_rows: Iterable[Row]) -> int:
    """Leads invoiced without a test drive."""
    return sum(
        1
        for row in lead_rows
        if is_flag_set(resolve(row, FLAG_INVOICED_KEYS))
        and not is_flag_set(resolve(row, FLAG_TEST_DRIVE_KEYS))
    )


def sum_store_visits(visit_rows: Iterable[Row]) -> float:
    adapter = adapter_for(RecordKind.STORE_VISIT)
    return sum(adapter.visit_count(row) for row in visit_rows)


def collect_days(row_groups: Iterable[Iterable[Row]], keys: Sequence[str]) -> list[float]:
    values: list[float] = []
    for rows in row_groups:
        for row in rows:
            days = parse_elapsed_days(resolve(row, keys))
            if days is not None:
                values.append(days)
    return values


@dataclass(frozen=True)
class FunnelStage:
    entered: float
    converted: float

    @property
    def rate(self) -> float:
        return safe_rate(self.converted, self.entered)

    def to_dict(self) -> dict[str, float]:
        return {"entered": self.entered, "converted": self.converted, "rate": self.rate}


@dataclass(frozen=True)
class FunnelMetrics:
    direct_leads: FunnelStage
    leads_to_test_drive: FunnelStage
    test_drive_to_sale: FunnelStage
    full_journey: FunnelStage
    visits_to_test_drive: FunnelStage
    visits_to_sale: FunnelStage

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {name: stage.to_dict() for name, stage in vars(self).items()}


@dataclass(frozen=True)
class Metrics:
    leads: int = 0
    test_drives: int = 0
    journeys: int = 0
    invoices: int = 0
    store_visits: float = 0.0
    leads_with_test_drive: int = 0
    leads_invoiced: int = 0
    test_drives_invoiced: int = 0
    direct_invoiced: int = 0
    total_invoiced: int = 0
    funnels: FunnelMetrics | None = None
    avg_lead_to_test_drive_days: float | None = None
    avg_test_drive_to_invoice_days: float | None = None
    avg_lead_to_invoice_days: float | None = None
    avg_total_journey_days: float | None = None
    decided_quickly_count: int = 0
    invoiced_leads_count: int = 0
    decided_quickly_percentage: float = 0.0
    percent_new_customers: float = 0.0
    percent_returning_customers: float = 0.0
    osat_car_handover: float = 0.0
    osat_test_drive: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["funnels"] = self.funnels.to_dict() if self.funnels else None
        return payload


def _customer_mix(rows: Sequence[Row]) -> tuple[float, float]:
    new_values: list[float] = []
    returning_values: list[float] = []
    for row in rows:
        new_pct = parse_float(resolve(row, PERCENT_NEW_KEYS))
        if new_pct is not None:
            new_values.append(new_pct)
        returning_pct = parse_float(resolve(row, PERCENT_RETURNING_KEYS))
        if returning_pct is not None:
            returning_values.append(returning_pct)
    return mean_or_none(new_values) or 0.0, mean_or_none(returning_values) or 0.0


def _satisfaction(rows: Sequence[Row]) -> tuple[float, float]:
    """Response-weighted satisfaction for the handover and test-drive surveys."""
    weighted = {SURVEY_CAR_HANDOVER: 0.0, SURVEY_TEST_DRIVE: 0.0}
    responses = {SURVEY_CAR_HANDOVER: 0.0, SURVEY_TEST_DRIVE: 0.0}
    for row in rows:
        event = resolve(row, SURVEY_EVENT_KEYS)
        if event is None:
            continue
        bucket = str(event).strip()
        if bucket not in weighted:
            continue
        score = parse_float(resolve(row, SATISFACTION_KEYS))
        count = parse_float(resolve(row, RESPONSE_COUNT_KEYS))
        if score is None or count is None or count < 0:
            continue
        weighted[bucket] += score * count
        responses[bucket] += count

    def _weighted_mean(bucket: str) -> float:
        if responses[bucket] <= 0:
            return 0.0
        return weighted[bucket] / responses[bucket]

    return _weighted_mean(SURVEY_CAR_HANDOVER), _weighted_mean(SURVEY_TEST_DRIVE)


def aggregate(
    records: RecordSets,
    config: AggregationConfig = DEFAULT_AGGREGATION,
) -> Metrics:
    """Compute every funnel metric for ``records``.  Pure and deterministic."""
    leads = records[RecordKind.LEAD]
    test_drives = records[RecordKind.TEST_DRIVE]
    journeys = records[RecordKind.JOURNEY]
    invoices = records[RecordKind.INVOICE]

    total_leads = len(leads)
    total_test_drives = len(test_drives)
    total_journeys = len(journeys)
    total_invoices = len(invoices)
    store_visits = sum_store_visits(records[RecordKind.STORE_VISIT])

    leads_with_test_drive = count_flagged(leads, FLAG_TEST_DRIVE_KEYS)
    leads_invoiced = count_flagged(leads, FLAG_INVOICED_KEYS)
    test_drives_invoiced = count_flagged(test_drives, FLAG_INVOICED_KEYS)
    direct_invoiced = count_direct_invoiced(leads)
    total_invoiced = resolve_total_invoiced(
        total_invoices,
        leads_invoiced,
        test_drives_invoiced,
        config.invoice_policy,
    )

    funnels = FunnelMetrics(
        direct_leads=FunnelStage(total_leads, direct_invoiced),
        leads_to_test_drive=FunnelStage(total_leads, leads_with_test_drive),
        test_drive_to_sale=FunnelStage(total_test_drives, test_drives_invoiced),
        full_journey=FunnelStage(total_leads, total_journeys),
        visits_to_test_drive=FunnelStage(store_visits, total_test_drives),
        visits_to_sale=FunnelStage(store_visits, total_invoiced),
    )

    timed_sets = (leads, test_drives, journeys)
    lead_to_invoice_days = collect_days((leads, journeys), DAYS_LEAD_TO_INVOICE_KEYS)
    decided_quickly = sum(1 for d in lead_to_invoice_days if d <= config.decided_quickly_days)
    invoiced_leads_count = leads_invoiced + total_journeys

    percent_new, percent_returning = _customer_mix(records[RecordKind.CUSTOMER_MIX])
    osat_handover, osat_test_drive = _satisfaction(records[RecordKind.SATISFACTION])

    return Metrics(
        leads=total_leads,
        test_drives=total_test_drives,
        journeys=total_journeys,
        invoices=total_invoices,
        store_visits=store_visits,
        leads_with_test_drive=leads_with_test_drive,
        leads_invoiced=leads_invoiced,
        test_drives_invoiced=test_drives_invoiced,
        direct_invoiced=direct_invoiced,
        total_invoiced=total_invoiced,
        funnels=funnels,
        avg_lead_to_test_drive_days=mean_or_none(
            collect_days(timed_sets, DAYS_LEAD_TO_TEST_DRIVE_KEYS)
        ),
        avg_test_drive_to_invoice_days=mean_or_none(
            collect_days(timed_sets, DAYS_TEST_DRIVE_TO_INVOICE_KEYS)
        ),
        avg_lead_to_invoice_days=mean_or_none(
            collect_days(timed_sets, DAYS_LEAD_TO_INVOICE_KEYS)
        ),
        avg_total_journey_days=mean_or_none(
            collect_days((journeys,), DAYS_LEAD_TO_INVOICE_KEYS)
        ),
        decided_quickly_count=decided_quickly,
        invoiced_leads_count=invoiced_leads_count,
        decided_quickly_percentage=safe_rate(decided_quickly, invoiced_leads_count),
        percent_new_customers=percent_new,
        percent_returning_customers=percent_returning,
        osat_car_handover=osat_handover,
        osat_test_drive=osat_test_drive,
    )

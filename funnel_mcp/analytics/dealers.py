"""Dealer catalog: one display name per normalized dealer identity."""

from __future__ import annotations

import logging
import re

from funnel_mcp.data.records import RecordKind, RecordSets, adapter_for
from funnel_mcp.normalization import normalize_dealer_name

logger = logging.getLogger(__name__)

_DIGIT_RUN_RE = re.compile(r"\d{3,}")

# These exports sometimes put e-mails or store codes in the dealer column.
_NOISY_DEALER_KINDS = frozenset({RecordKind.TEST_DRIVE, RecordKind.INVOICE})
_DEALER_BEARING_KINDS = (
    RecordKind.LEAD,
    RecordKind.TEST_DRIVE,
    RecordKind.JOURNEY,
    RecordKind.INVOICE,
)


def looks_like_dealer(text: str) -> bool:
    return "@" not in text and not _DIGIT_RUN_RE.search(text) and len(text) >= 3


class DealerCatalog:
    """Keeps the first original spelling seen for each canonical key."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}

    def add(self, name: object) -> str:
        """Register ``name`` and return its canonical key (``""`` if unusable)."""
        if not isinstance(name, str):
            return ""
        original = name.strip()
        key = normalize_dealer_name(original)
        if key and key not in self._names:
            self._names[key] = original
        return key

    def display_name(self, key: str) -> str | None:
        return self._names.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._names

    def __len__(self) -> int:
        return len(self._names)

    def sorted_names(self) -> list[str]:
        return sorted(self._names.values())


def build_catalog(records: RecordSets) -> DealerCatalog:
    """Register dealer spellings from every dealer-bearing set in sheet order."""
    catalog = DealerCatalog()
    for kind in _DEALER_BEARING_KINDS:
        adapter = adapter_for(kind)
        seen = 0
        for row in records[kind]:
            raw = adapter.named_dealer(row)
            if raw is None:
                continue
            text = str(raw).strip()
            if kind in _NOISY_DEALER_KINDS and not looks_like_dealer(text):
                continue
            if catalog.add(text):
                seen += 1
        logger.debug("%s: %d rows with dealer", kind.sheet_label, seen)
    return catalog


def extract_dealers(records: RecordSets) -> list[str]:
    """Return the deduplicated dealer display names across dealer-bearing sets."""
    names = build_catalog(records).sorted_names()
    logger.info("Found %d distinct dealers", len(names))
    return names

"""Shared canonical normalization functions for funnel records.

Single source of truth, imported by the loader (dealer catalog), the filter
engine (dealer predicate) and the aggregators (flags, elapsed days, weights).
"""

from __future__ import annotations

import math
import re
import unicodedata
from collections.abc import Mapping, Sequence
from typing import Any

_PARENTHESIZED_RE = re.compile(r"\([^)]*\)")
_WHITESPACE_RE = re.compile(r"\s+")

_FLAG_TRUE_VALUES = (1, "1", True)


def is_blank(value: Any) -> bool:
    """``None`` and ``""`` are blank. Whitespace-only strings are not."""
    return value is None or value == ""


def resolve(record: Mapping[str, Any], aliases: Sequence[str]) -> Any | None:
    """Return the value of the first alias present with a non-blank value."""
    for key in aliases:
        value = record.get(key)
        if not is_blank(value):
            return value
    return None


def resolve_position(record: Mapping[str, Any], index: int) -> Any | None:
    """Return the value stored in the ``index``-th column, or ``None``."""
    if index < 0 or index >= len(record):
        return None
    value = list(record.values())[index]
    return None if is_blank(value) else value


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_dealer_name(name: Any) -> str:
    """Canonical dealer key.  Returns ``""`` for empty input.

    ``"Concessionária Sul (462011)"`` and ``"concessionaria  sul"`` share the
    key ``"concessionaria sul"``.
    """
    if name is None:
        return ""
    text = str(name).strip()
    if not text:
        return ""
    text = _PARENTHESIZED_RE.sub("", text)
    text = strip_accents(text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def is_flag_set(value: Any) -> bool:
    """A flag is set only for ``1``, ``"1"`` or ``True``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return value in _FLAG_TRUE_VALUES


def parse_float(value: Any) -> float | None:
    """Best-effort float parsing.  Returns ``None`` for unparseable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            result = float(stripped)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def parse_elapsed_days(value: Any) -> float | None:
    """Elapsed days must be a non-negative number; anything else is excluded."""
    parsed = parse_float(value)
    if parsed is None or parsed < 0:
        return None
    return parsed

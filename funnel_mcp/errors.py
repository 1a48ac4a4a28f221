"""Load-time error types and the tool-layer error reporter."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class FunnelDataError(RuntimeError):
    """Base class for fatal load errors, with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class SchemaError(FunnelDataError):
    """The input is structurally insufficient (too few sheets, empty lead sheet)."""


class UpstreamFetchError(FunnelDataError):
    """A configured endpoint is missing, unreachable, or answered non-2xx."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.status = status


def log_and_return_tool_error(*, tool_name: str, exc: Exception, user_message: str) -> str:
    """Log a tool failure and return the message the caller should see.

    Load errors carry a human-readable message of their own, so it is passed
    through unchanged; anything else is logged with its traceback and replaced
    by ``user_message``.
    """
    if isinstance(exc, FunnelDataError):
        logger.warning("%s failed [%s]: %s", tool_name, exc.code, exc)
        return str(exc)
    logger.exception("%s failed: %s", tool_name, exc)
    return user_message

"""Shared external API clients."""

from funnel_mcp.clients.sheets import (
    ResponseCache,
    SheetEndpointClient,
    extract_rows,
)

__all__ = [
    "ResponseCache",
    "SheetEndpointClient",
    "extract_rows",
]

"""Remote cell access: transports and the resilient access layer.

Example:
    >>> from sheetplan.remote import MemoryCellTransport, ResilientCellClient
    >>> client = ResilientCellClient(MemoryCellTransport())
    >>> await client.write("AGENTSCAPE!C6", "# Plan: Demo")
    >>> await client.read("AGENTSCAPE!C6")
    '# Plan: Demo'
"""

from sheetplan.remote.resilience import (
    DEFAULT_RETRYABLE_ERRORS,
    RETRYABLE_STATUS_CODES,
    RateLimiter,
    ResilientCellClient,
    RetryConfig,
    calculate_backoff,
    classify_error,
    is_retryable,
)
from sheetplan.remote.transport import (
    CellTransport,
    MemoryCellTransport,
    SheetsCellTransport,
)

__all__ = [
    "CellTransport",
    "MemoryCellTransport",
    "SheetsCellTransport",
    "RetryConfig",
    "RateLimiter",
    "ResilientCellClient",
    "calculate_backoff",
    "classify_error",
    "is_retryable",
    "DEFAULT_RETRYABLE_ERRORS",
    "RETRYABLE_STATUS_CODES",
]

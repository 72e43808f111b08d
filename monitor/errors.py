"""Monitor exception hierarchy.

Fetch and decode errors are raised per source and caught by the aggregator,
so a single broken export never fails a whole refresh.
"""

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base exception for all monitor failures."""


class ConfigError(MonitorError):
    """Raised for invalid runtime configuration."""


class SheetFetchError(MonitorError):
    """Raised when a published export cannot be retrieved."""

    def __init__(self, package_id: str, message: str, status: Optional[int] = None):
        super().__init__(f"{package_id}: {message}")
        self.package_id = package_id
        self.status = status


class SheetDecodeError(MonitorError):
    """Raised when an export payload is not a readable workbook."""

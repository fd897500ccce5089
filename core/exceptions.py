"""
core/exceptions.py
Scan error taxonomy.

  ScanInputError      – rejected before any socket activity
  ScanInProgressError – engine already running a scan
  MemoryPressureError – scan aborted for resource exhaustion

Per-probe failures (refused, timeout, DNS) are never raised; they become
ProbeResult statuses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from core.models import ProbeResult, ScanMetrics


class ScanError(Exception):
    """Base class for every scan-level failure."""


class ScanInputError(ScanError, ValueError):
    """Malformed request: empty target, no ports, bad timeout, ..."""


class PortValidationError(ScanInputError):
    """Raised when a port spec string is invalid."""

    def __init__(self, message: str, code: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.field = field


class TargetSpecError(ScanInputError):
    """Raised when a target range cannot be expanded."""


class ScanLimitError(ScanInputError):
    """Raised when hosts × ports exceeds the accepted amount of work."""

    def __init__(self, work_units: int, limit: int):
        super().__init__(
            f"Scan of {work_units} probes exceeds limit of {limit}"
        )
        self.work_units = work_units
        self.limit = limit


class UnsupportedMethodError(ScanInputError):
    """Raised for scan methods other than TCP connect."""


class ScanInProgressError(ScanError):
    """Raised when a scan is started while another one is active."""


class MemoryPressureError(ScanError):
    """
    Raised when process memory crosses the critical mark mid-scan.

    The engine attaches the partial results and the finalized metrics
    before re-raising, so callers can still inspect what was scanned.
    """

    def __init__(self, usage_ratio: float, critical: float):
        super().__init__(
            f"Memory usage {usage_ratio:.0%} above critical mark {critical:.0%}"
        )
        self.usage_ratio = usage_ratio
        self.critical = critical
        self.results: List["ProbeResult"] = []
        self.metrics: Optional["ScanMetrics"] = None


__all__ = [
    "ScanError", "ScanInputError", "PortValidationError", "TargetSpecError",
    "ScanLimitError", "UnsupportedMethodError", "ScanInProgressError",
    "MemoryPressureError",
]

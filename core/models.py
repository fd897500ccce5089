"""
core/models.py
Data classes shared by the probe, controller, metrics and engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from utils.constants import (
    DEFAULT_TIMEOUT_MS, PortStatus, ScanMethod, ScanPhase, ScanType,
)


# ─── Port sets ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PortRange:
    start: int
    end:   int

    def __iter__(self):
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return self.end - self.start + 1


@dataclass
class ParsedPorts:
    individual: List[int] = field(default_factory=list)
    ranges:     List[PortRange] = field(default_factory=list)
    expanded:   List[int] = field(default_factory=list)
    total:      int = 0


@dataclass
class ValidationResult:
    is_valid:   bool
    errors:     List[str] = field(default_factory=list)
    warnings:   List[str] = field(default_factory=list)
    port_count: int = 0


# ─── Request / Result ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScanRequest:
    target:     str
    ports:      Tuple[int, ...]
    scan_type:  ScanType = ScanType.SINGLE
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    method:     ScanMethod = ScanMethod.TCP
    port_input: str = ""

    def __post_init__(self):
        # Accept any sequence of ports and plain-string enums
        object.__setattr__(self, "ports", tuple(self.ports))
        object.__setattr__(self, "scan_type", ScanType(self.scan_type))
        object.__setattr__(self, "method", ScanMethod(self.method))

    @classmethod
    def from_spec(
        cls,
        target: str,
        port_spec: str,
        scan_type: ScanType | str = ScanType.SINGLE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        method: ScanMethod | str = ScanMethod.TCP,
    ) -> "ScanRequest":
        """Build a request from a raw port spec such as "22,80-90,443"."""
        from core.port_parser import parse_ports

        parsed = parse_ports(port_spec)
        return cls(
            target=target,
            ports=tuple(parsed.expanded),
            scan_type=scan_type,
            timeout_ms=timeout_ms,
            method=method,
            port_input=port_spec,
        )

    @property
    def port_count(self) -> int:
        return len(self.ports)


@dataclass
class ProbeResult:
    ip:               str
    port:             int
    status:           PortStatus
    service:          Optional[str] = None
    banner:           Optional[str] = None
    response_time_ms: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == PortStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip":               self.ip,
            "port":             self.port,
            "status":           self.status.value,
            "service":          self.service,
            "banner":           self.banner,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class ScanMetrics:
    start_time:               float = 0.0     # epoch seconds
    end_time:                 Optional[float] = None
    duration_s:               Optional[float] = None
    total_ports:              int = 0
    scanned_ports:            int = 0
    open_ports:               int = 0
    closed_ports:             int = 0
    timeout_ports:            int = 0
    scan_speed:               Optional[float] = None   # ports / second
    average_response_time_ms: Optional[float] = None
    peak_memory_bytes:        int = 0
    max_concurrent_workers:   int = 0
    average_active_workers:   float = 0.0
    outcome:                  ScanPhase = ScanPhase.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time":               self.start_time,
            "end_time":                 self.end_time,
            "duration_s":               self.duration_s,
            "total_ports":              self.total_ports,
            "scanned_ports":            self.scanned_ports,
            "open_ports":               self.open_ports,
            "closed_ports":             self.closed_ports,
            "timeout_ports":            self.timeout_ports,
            "scan_speed":               self.scan_speed,
            "average_response_time_ms": self.average_response_time_ms,
            "peak_memory_bytes":        self.peak_memory_bytes,
            "max_concurrent_workers":   self.max_concurrent_workers,
            "average_active_workers":   self.average_active_workers,
            "outcome":                  self.outcome.value,
        }


class ScanReport(NamedTuple):
    results: List[ProbeResult]
    metrics: ScanMetrics

    @property
    def open_ports(self) -> List[ProbeResult]:
        return sorted(
            (r for r in self.results if r.is_open),
            key=lambda r: (r.ip, r.port),
        )

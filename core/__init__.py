"""
PortProbe Core — Public API

from core import ScanEngine, ScanRequest, parse_ports
"""
from core.exceptions     import (ScanError, ScanInputError, PortValidationError,
                                 TargetSpecError, ScanLimitError,
                                 UnsupportedMethodError, ScanInProgressError,
                                 MemoryPressureError)
from core.models         import (PortRange, ParsedPorts, ValidationResult,
                                 ScanRequest, ProbeResult, ScanMetrics, ScanReport)
from core.port_parser    import PortParser, parse_ports, validate_ports
from core.targets        import expand_targets, hosts_for
from core.service_fingerprint import BannerClassifier, classify, grab_banner
from core.probe          import probe_port
from core.metrics        import MetricsCollector, EngineStatistics, RateMeter
from core.concurrency    import (ConcurrencyController, MemoryGuard, ScanState,
                                 concurrency_for, group_size_for)
from core.scanner_engine import ScanEngine

__all__ = [
    "ScanEngine", "ScanRequest", "ScanReport", "ProbeResult", "ScanMetrics",
    "PortParser", "parse_ports", "validate_ports",
    "PortRange", "ParsedPorts", "ValidationResult",
    "expand_targets", "hosts_for",
    "BannerClassifier", "classify", "grab_banner", "probe_port",
    "MetricsCollector", "EngineStatistics", "RateMeter",
    "ConcurrencyController", "MemoryGuard", "ScanState",
    "concurrency_for", "group_size_for",
    "ScanError", "ScanInputError", "PortValidationError", "TargetSpecError",
    "ScanLimitError", "UnsupportedMethodError", "ScanInProgressError",
    "MemoryPressureError",
]

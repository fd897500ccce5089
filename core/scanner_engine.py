"""
core/scanner_engine.py
Async TCP-connect scan engine:
  • request validation before any socket activity
  • hosts × ports fan-out through the ConcurrencyController
  • percent progress callback
  • cooperative stop_scan() with partial results
  • per-scan metrics and lifetime statistics
  • one active scan per engine instance
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable, List, Optional

from core.concurrency import ConcurrencyController, MemoryGuard, ProbeFn, ScanState
from core.exceptions import (
    MemoryPressureError, ScanInProgressError, ScanInputError,
    UnsupportedMethodError,
)
from core.metrics import EngineStatistics, MetricsCollector
from core.models import ProbeResult, ScanMetrics, ScanReport, ScanRequest
from core.targets import hosts_for
from utils.config import EngineConfig
from utils.constants import PORT_MAX, PORT_MIN, ScanMethod, ScanPhase, ScanProfile, ScanType
from utils.validators import validate_target, validate_timeout

log = logging.getLogger("portprobe.engine")

PercentFn = Callable[[float], None]


class ScanEngine:
    """
    Runs one port scan at a time and keeps its results and metrics.

    Layering contract:
      Imports only: core/*, utils/*
      Does NOT import: main
    """

    def __init__(
        self,
        profile: str = "default",
        grab_banners: Optional[bool] = None,
        config: Optional[EngineConfig] = None,
        memory_guard: Optional[MemoryGuard] = None,
        probe: Optional[ProbeFn] = None,
    ):
        config = config or EngineConfig(profile=profile)
        if grab_banners is not None:
            config = dataclasses.replace(config, grab_banners=grab_banners)
        self._profile: ScanProfile = config.scan_profile()

        if memory_guard is None:
            memory_guard = MemoryGuard(
                high_water=config.memory_high_water,
                critical=config.memory_critical,
                limit_bytes=config.memory_limit_bytes,
            )
        self._controller = ConcurrencyController(
            probe=probe,
            memory_guard=memory_guard,
            max_work_units=config.max_work_units,
            group_delay_ms=self._profile.group_delay_ms,
            grab_banners=self._profile.grab_banners,
        )

        self._state = ScanState()
        self._collector = MetricsCollector()
        self._statistics = EngineStatistics()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def profile(self) -> ScanProfile:
        return self._profile

    @property
    def statistics(self) -> EngineStatistics:
        return self._statistics

    @property
    def is_scanning(self) -> bool:
        return self._state.is_running

    # ── Public scan API ───────────────────────────────────────────────────────

    async def perform_scan(
        self,
        request: ScanRequest,
        on_progress: Optional[PercentFn] = None,
    ) -> ScanReport:
        """
        Scan every port of the request on every target host.

        Raises ScanInputError subclasses for bad requests, ScanInProgressError
        when a scan is already running, MemoryPressureError when the scan is
        aborted for memory (with partial results and metrics attached).
        """
        if self.is_scanning:
            raise ScanInProgressError("A scan is already in progress")

        hosts = self._validate(request)
        ports = list(request.ports)
        total = len(hosts) * len(ports)
        self._controller.check_work(total)

        state = ScanState()
        collector = MetricsCollector()
        self._state = state
        self._collector = collector
        collector.start(total)
        state.begin(total)

        log.info("Scanning %s: %d host(s) × %d port(s), timeout %dms",
                 request.target, len(hosts), len(ports), request.timeout_ms)

        progress = None
        if on_progress is not None:
            def progress(completed: int, of: int) -> None:
                on_progress(completed / of * 100.0)

        outcome = ScanPhase.FAILED
        try:
            await self._controller.run(
                hosts, ports, request.timeout_ms,
                on_progress=progress, state=state, metrics=collector,
            )
            outcome = state.phase
        except asyncio.CancelledError:
            outcome = ScanPhase.CANCELLED
            raise
        except MemoryPressureError as exc:
            log.error("Scan aborted: %s", exc)
            exc.results = list(state.results)
            exc.metrics = self._finish(state, collector, ScanPhase.FAILED)
            raise
        finally:
            if not collector.finalized:
                self._finish(state, collector, outcome)

        metrics = collector.metrics
        log.info("Scan %s: %d/%d probed, %d open in %.2fs",
                 outcome.value, metrics.scanned_ports, metrics.total_ports,
                 metrics.open_ports, metrics.duration_s or 0.0)
        return ScanReport(results=list(state.results), metrics=metrics)

    def stop_scan(self) -> None:
        """Ask the running scan to stop admitting probes. Safe at any time."""
        if self._state.scanning:
            log.info("Stop requested")
        self._state.request_stop()

    def get_results(self) -> List[ProbeResult]:
        return list(self._state.results)

    def get_metrics(self) -> ScanMetrics:
        return self._collector.metrics

    def current_rate(self) -> float:
        """Probes per second over the last few seconds of the current scan."""
        return self._collector.current_rate()

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _finish(
        self, state: ScanState, collector: MetricsCollector, outcome: ScanPhase,
    ) -> ScanMetrics:
        if state.is_running:
            state.finish(outcome)
        metrics = collector.finalize(outcome)
        self._statistics.update(metrics)
        return metrics

    @staticmethod
    def _validate(request: ScanRequest) -> List[str]:
        """Reject a malformed request. Returns the hosts to probe."""
        if request.method != ScanMethod.TCP:
            raise UnsupportedMethodError(
                f"Scan method {request.method.value!r} is not supported; use 'tcp'"
            )

        ok, err = validate_target(request.target,
                                  is_range=request.scan_type == ScanType.RANGE)
        if not ok:
            raise ScanInputError(err)

        if not request.ports:
            raise ScanInputError("No ports to scan")
        bad = [p for p in request.ports if not PORT_MIN <= p <= PORT_MAX]
        if bad:
            raise ScanInputError(
                f"Ports out of range {PORT_MIN}-{PORT_MAX}: {bad[:5]}"
            )

        ok, err = validate_timeout(request.timeout_ms)
        if not ok:
            raise ScanInputError(err)

        hosts = hosts_for(request)
        if not hosts:
            raise ScanInputError(f"Target range {request.target!r} is empty")
        return hosts

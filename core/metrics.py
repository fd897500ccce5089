"""
core/metrics.py
Per-scan metrics and lifetime engine statistics.

MetricsCollector lifecycle:
  start(total) → observe(...) / sample_memory(...) / record_workers(...) → finalize(outcome)

finalize() computes:
  duration_s               = end_time - start_time
  scan_speed               = scanned_ports / duration_s
  average_response_time_ms = mean of the non-zero response times
  average_active_workers   = mean of the worker-count samples
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, Optional, Tuple, Union

from core.models import ProbeResult, ScanMetrics
from utils.constants import PortStatus, ScanPhase


# ─── Windowed rate ────────────────────────────────────────────────────────────

class RateMeter:
    """
    Completions per second over a trailing window.

    Fed only from the scan's event loop. Samples older than the window are
    popped from the left as the meter is read or marked.
    """

    def __init__(self, window_s: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.window_s = window_s
        self.count = 0
        self._clock = clock
        self._started = clock()
        self._samples: Deque[Tuple[float, int]] = deque()   # (when, completions)
        self._in_window = 0

    def mark(self, completions: int = 1) -> None:
        now = self._clock()
        self._samples.append((now, completions))
        self._in_window += completions
        self.count += completions
        self._expire(now)

    def current_rate(self) -> float:
        now = self._clock()
        self._expire(now)
        span = min(self.window_s, now - self._started)
        if not self._in_window or span <= 0:
            return 0.0
        return self._in_window / span

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_s
        while self._samples and self._samples[0][0] < cutoff:
            _, completions = self._samples.popleft()
            self._in_window -= completions


# ─── Per-scan collector ───────────────────────────────────────────────────────

class MetricsCollector:
    """
    Aggregates counts, timing, memory and worker usage for one scan.

    Only the controller's completion path calls observe(); finalize() must
    be called exactly once when the scan reaches a terminal state.
    """

    def __init__(self):
        self.metrics = ScanMetrics()
        self.rate = RateMeter()
        self._t0 = time.monotonic()
        self._response_total = 0
        self._response_count = 0
        self._worker_samples = 0
        self._worker_sum = 0
        self._finalized = False

    def start(self, total_ports: int) -> ScanMetrics:
        self.metrics = ScanMetrics(start_time=time.time(), total_ports=total_ports)
        self.rate = RateMeter()
        self._t0 = time.monotonic()
        self._response_total = 0
        self._response_count = 0
        self._worker_samples = 0
        self._worker_sum = 0
        self._finalized = False
        return self.metrics

    def observe(self, results: Union[ProbeResult, Iterable[ProbeResult]]) -> None:
        if isinstance(results, ProbeResult):
            results = (results,)
        m = self.metrics
        for r in results:
            m.scanned_ports += 1
            if r.status == PortStatus.OPEN:
                m.open_ports += 1
            elif r.status == PortStatus.CLOSED:
                m.closed_ports += 1
            else:
                # filtered has no separate counter; both mean "no answer"
                m.timeout_ports += 1
            if r.response_time_ms > 0:
                self._response_total += r.response_time_ms
                self._response_count += 1
            self.rate.mark()

    def sample_memory(self, used_bytes: int) -> None:
        if used_bytes > self.metrics.peak_memory_bytes:
            self.metrics.peak_memory_bytes = used_bytes

    def record_workers(self, active: int) -> None:
        self._worker_samples += 1
        self._worker_sum += active
        if active > self.metrics.max_concurrent_workers:
            self.metrics.max_concurrent_workers = active

    def current_rate(self) -> float:
        return self.rate.current_rate()

    @property
    def finalized(self) -> bool:
        return self._finalized

    def finalize(self, outcome: ScanPhase = ScanPhase.COMPLETED) -> ScanMetrics:
        if self._finalized:
            raise RuntimeError("Scan metrics already finalized")
        self._finalized = True

        m = self.metrics
        m.end_time = time.time()
        m.duration_s = time.monotonic() - self._t0
        m.scan_speed = m.scanned_ports / m.duration_s if m.duration_s > 0 else 0.0
        m.average_response_time_ms = (
            self._response_total / self._response_count
            if self._response_count else 0.0
        )
        m.average_active_workers = (
            self._worker_sum / self._worker_samples if self._worker_samples else 0.0
        )
        m.outcome = outcome
        return m


# ─── Lifetime statistics (one per engine instance) ────────────────────────────

@dataclass
class EngineStatistics:
    total_scans:         int = 0
    total_ports_scanned: int = 0
    total_open_ports:    int = 0
    total_time_s:        float = 0.0
    fastest_scan_s:      Optional[float] = None
    slowest_scan_s:      float = 0.0

    def update(self, metrics: ScanMetrics) -> None:
        duration = metrics.duration_s or 0.0
        self.total_scans += 1
        self.total_ports_scanned += metrics.scanned_ports
        self.total_open_ports += metrics.open_ports
        self.total_time_s += duration
        if self.fastest_scan_s is None or duration < self.fastest_scan_s:
            self.fastest_scan_s = duration
        if duration > self.slowest_scan_s:
            self.slowest_scan_s = duration

    @property
    def average_scan_s(self) -> float:
        return self.total_time_s / self.total_scans if self.total_scans else 0.0

    def ports_per_second(self) -> float:
        if self.total_time_s > 0:
            return self.total_ports_scanned / self.total_time_s
        return 0.0

    def success_rate(self) -> float:
        """Percentage of scanned ports found open."""
        if self.total_ports_scanned > 0:
            return self.total_open_ports / self.total_ports_scanned * 100.0
        return 0.0

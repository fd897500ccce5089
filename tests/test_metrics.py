"""
tests/test_metrics.py
Unit tests for core/metrics.py — per-scan collector, rate meter, lifetime stats.
Run: pytest tests/test_metrics.py -v
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from core.metrics import EngineStatistics, MetricsCollector, RateMeter
from core.models import ProbeResult, ScanMetrics
from utils.constants import PortStatus, ScanPhase


def _result(port, status, ms=0):
    return ProbeResult(ip="10.0.0.1", port=port, status=status, response_time_ms=ms)


class TestMetricsCollector:

    def setup_method(self):
        self.mc = MetricsCollector()
        self.mc.start(total_ports=5)

    def test_start_resets(self):
        assert self.mc.metrics.total_ports == 5
        assert self.mc.metrics.scanned_ports == 0
        assert self.mc.metrics.start_time > 0
        assert not self.mc.finalized

    def test_counts_by_status(self):
        self.mc.observe([
            _result(22, PortStatus.OPEN, 5),
            _result(23, PortStatus.CLOSED, 1),
            _result(24, PortStatus.TIMEOUT, 100),
            _result(25, PortStatus.FILTERED, 100),
        ])
        m = self.mc.metrics
        assert m.scanned_ports == 4
        assert m.open_ports == 1
        assert m.closed_ports == 1
        assert m.timeout_ports == 2
        assert m.open_ports + m.closed_ports + m.timeout_ports == m.scanned_ports

    def test_observe_single_result(self):
        self.mc.observe(_result(80, PortStatus.OPEN, 3))
        assert self.mc.metrics.scanned_ports == 1

    def test_average_ignores_zero_times(self):
        self.mc.observe([
            _result(1, PortStatus.OPEN, 10),
            _result(2, PortStatus.CLOSED, 0),
            _result(3, PortStatus.OPEN, 30),
        ])
        m = self.mc.finalize()
        assert m.average_response_time_ms == pytest.approx(20.0)

    def test_average_zero_when_no_times(self):
        m = self.mc.finalize()
        assert m.average_response_time_ms == 0.0
        assert m.average_active_workers == 0.0

    def test_peak_memory_is_maximum(self):
        for used in (100, 500, 300):
            self.mc.sample_memory(used)
        assert self.mc.metrics.peak_memory_bytes == 500

    def test_workers(self):
        for active in (1, 3, 2):
            self.mc.record_workers(active)
        m = self.mc.finalize()
        assert m.max_concurrent_workers == 3
        assert m.average_active_workers == pytest.approx(2.0)

    def test_finalize_sets_timing_and_outcome(self):
        self.mc.observe([_result(1, PortStatus.OPEN, 1)])
        m = self.mc.finalize(ScanPhase.CANCELLED)
        assert m.end_time >= m.start_time
        assert m.duration_s >= 0
        assert m.scan_speed >= 0
        assert m.outcome == ScanPhase.CANCELLED
        assert self.mc.finalized

    def test_finalize_twice_raises(self):
        self.mc.finalize()
        with pytest.raises(RuntimeError):
            self.mc.finalize()

    def test_start_allows_new_finalize(self):
        self.mc.finalize()
        self.mc.start(3)
        assert self.mc.finalize().total_ports == 3

    def test_to_dict(self):
        d = self.mc.finalize().to_dict()
        assert d["outcome"] == "completed"
        assert d["total_ports"] == 5


class _Clock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class TestRateMeter:

    def test_rate_over_window(self):
        clock = _Clock()
        rm = RateMeter(window_s=2.0, clock=clock)
        clock.now += 1.0
        rm.mark(5)
        rm.mark(3)
        assert rm.count == 8
        assert rm.current_rate() == pytest.approx(8.0)

    def test_old_samples_expire(self):
        clock = _Clock()
        rm = RateMeter(window_s=2.0, clock=clock)
        rm.mark(10)
        clock.now += 3.0
        rm.mark(4)
        # the 10 fell out of the window; span is capped at 2s
        assert rm.current_rate() == pytest.approx(2.0)
        assert len(rm._samples) == 1
        assert rm.count == 14

    def test_idle_window_reads_zero(self):
        clock = _Clock()
        rm = RateMeter(window_s=1.0, clock=clock)
        rm.mark()
        clock.now += 5.0
        assert rm.current_rate() == 0.0

    def test_empty(self):
        assert RateMeter().current_rate() == 0.0

    def test_collector_marks_each_result(self):
        mc = MetricsCollector()
        mc.start(3)
        mc.observe([_result(1, PortStatus.OPEN), _result(2, PortStatus.CLOSED)])
        mc.observe(_result(3, PortStatus.TIMEOUT))
        assert mc.rate.count == 3


class TestEngineStatistics:

    def test_update(self):
        stats = EngineStatistics()
        stats.update(ScanMetrics(scanned_ports=10, open_ports=2, duration_s=2.0))
        stats.update(ScanMetrics(scanned_ports=30, open_ports=2, duration_s=6.0))
        assert stats.total_scans == 2
        assert stats.total_ports_scanned == 40
        assert stats.fastest_scan_s == 2.0
        assert stats.slowest_scan_s == 6.0
        assert stats.average_scan_s == pytest.approx(4.0)
        assert stats.ports_per_second() == pytest.approx(5.0)
        assert stats.success_rate() == pytest.approx(10.0)

    def test_empty(self):
        stats = EngineStatistics()
        assert stats.average_scan_s == 0.0
        assert stats.ports_per_second() == 0.0
        assert stats.success_rate() == 0.0
        assert stats.fastest_scan_s is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
core/concurrency.py
Bounded probe execution for one scan.

  • ScanState      – explicit per-scan state (phase, scanning flag, results)
  • MemoryGuard    – psutil RSS sampling against a high-water / critical mark
  • ConcurrencyController
        W = hosts × ports probes
        C = concurrency_for(W)      at most C probes in flight
        ports split into groups     groups of one host run in order,
                                    hosts overlap under the one limit
        scanning flag               checked before every admission

Concurrency by total work W:
    W ≤ 100      → 10
    W ≤ 1 000    → 25
    W ≤ 10 000   → 50
    larger       → 8   (fewer sockets in flight for very large sweeps)

Port group size by port count:
    ≤ 100 ports  → 100
    ≤ 1 000      → 75
    larger       → 50
"""

from __future__ import annotations

import asyncio
import functools
import gc
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

import psutil

from core.exceptions import MemoryPressureError, ScanLimitError
from core.metrics import MetricsCollector
from core.models import ProbeResult
from core.probe import probe_port
from utils.constants import (
    GROUP_DELAY_MS, LARGE_GROUP, MAX_WORK_UNITS,
    MEMORY_CRITICAL, MEMORY_HIGH_WATER, ScanPhase,
)

log = logging.getLogger("portprobe.controller")

ProbeFn = Callable[[str, int, int], Awaitable[ProbeResult]]
ProgressFn = Callable[[int, int], None]


# ─── Sizing ───────────────────────────────────────────────────────────────────

def concurrency_for(work_units: int) -> int:
    if work_units <= 100:
        return 10
    if work_units <= 1_000:
        return 25
    if work_units <= 10_000:
        return 50
    return 8


def group_size_for(port_count: int) -> int:
    if port_count <= 100:
        return 100
    if port_count <= 1_000:
        return 75
    return 50


def partition(ports: Sequence[int], size: int) -> List[List[int]]:
    return [list(ports[i:i + size]) for i in range(0, len(ports), size)]


# ─── Per-scan state ───────────────────────────────────────────────────────────

class ScanState:
    """
    State of one scan: Idle → Running → Completed | Cancelled | Failed.

    Written only from the event loop running the scan; request_stop() just
    clears a flag and is safe to call at any time, any number of times.
    """

    def __init__(self):
        self.phase = ScanPhase.IDLE
        self.scanning = False
        self.total = 0
        self.completed = 0
        self.active_workers = 0
        self.results: List[ProbeResult] = []

    @property
    def is_running(self) -> bool:
        return self.phase == ScanPhase.RUNNING

    def begin(self, total: int) -> None:
        self.phase = ScanPhase.RUNNING
        self.scanning = True
        self.total = total
        self.completed = 0
        self.active_workers = 0
        self.results = []

    def request_stop(self) -> None:
        self.scanning = False

    def finish(self, phase: ScanPhase) -> None:
        self.scanning = False
        self.phase = phase


# ─── Memory guard ─────────────────────────────────────────────────────────────

def process_rss() -> int:
    return psutil.Process().memory_info().rss


def address_space_limit() -> Optional[int]:
    """The RLIMIT_AS soft limit in bytes, or None when unset or unsupported."""
    if not hasattr(psutil, "RLIMIT_AS"):
        return None
    soft, _hard = psutil.Process().rlimit(psutil.RLIMIT_AS)
    if soft == psutil.RLIM_INFINITY or soft <= 0:
        return None
    return soft


class MemoryGuard:
    """
    Compare process memory against a limit before each batch of work.

    ratio > high_water → gc.collect() and a warning
    ratio > critical   → MemoryPressureError

    limit_bytes defaults to the RLIMIT_AS soft limit where one is set,
    capped at total system memory. Without a limit_mb or an rlimit the
    guard only trips when the process holds most of the machine.
    """

    def __init__(
        self,
        high_water: float = MEMORY_HIGH_WATER,
        critical: float = MEMORY_CRITICAL,
        limit_bytes: Optional[int] = None,
        sampler: Callable[[], int] = process_rss,
    ):
        self.high_water = high_water
        self.critical = critical
        self._limit = limit_bytes
        self._sampler = sampler

    @property
    def limit_bytes(self) -> int:
        if self._limit is None:
            total = psutil.virtual_memory().total
            rlimit = address_space_limit()
            self._limit = min(total, rlimit) if rlimit else total
        return self._limit

    def sample(self) -> int:
        return self._sampler()

    def check(self) -> int:
        """Sample usage, collect garbage or abort as needed. Returns bytes used."""
        used = self.sample()
        ratio = used / self.limit_bytes
        if ratio > self.critical:
            raise MemoryPressureError(ratio, self.critical)
        if ratio > self.high_water:
            log.warning("memory at %.0f%% of limit, collecting garbage", ratio * 100)
            gc.collect()
            used = self.sample()
        return used


# ─── Controller ───────────────────────────────────────────────────────────────

class ConcurrencyController:
    """
    Runs hosts × ports probes through a bounded asyncio queue.

    Layering contract:
      Imports only: core.probe, core.metrics, core.models, core.exceptions, utils
    """

    def __init__(
        self,
        probe: Optional[ProbeFn] = None,
        memory_guard: Optional[MemoryGuard] = None,
        max_work_units: int = MAX_WORK_UNITS,
        group_delay_ms: int = GROUP_DELAY_MS,
        grab_banners: bool = True,
    ):
        self._probe: ProbeFn = probe or functools.partial(
            probe_port, grab_banners=grab_banners,
        )
        self._memory = memory_guard
        self.max_work_units = max_work_units
        self.group_delay_ms = group_delay_ms

    def check_work(self, work_units: int) -> None:
        if work_units > self.max_work_units:
            raise ScanLimitError(work_units, self.max_work_units)

    async def run(
        self,
        hosts: Sequence[str],
        ports: Sequence[int],
        timeout_ms: int,
        on_progress: Optional[ProgressFn] = None,
        state: Optional[ScanState] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> List[ProbeResult]:
        """
        Probe every (host, port) pair. Returns the results collected.

        Returns early with partial results when state.request_stop() is
        called; raises MemoryPressureError when memory crosses the critical
        mark, leaving the partial results on state.results.

        on_progress(completed, total) is queued on the loop after each result
        and has run for every result by the time run() returns. It must not
        block; exceptions it raises are logged.
        """
        total = len(hosts) * len(ports)
        self.check_work(total)

        state = state or ScanState()
        if state.phase != ScanPhase.RUNNING:
            state.begin(total)

        limit = concurrency_for(total)
        size = group_size_for(len(ports))
        groups = partition(ports, size)
        sem = asyncio.Semaphore(limit)
        log.debug("running %d probes: concurrency %d, group size %d",
                  total, limit, size)

        # Hosts share the semaphore; each walks its own groups in order
        host_tasks = [
            asyncio.ensure_future(self._run_host(
                host, groups, timeout_ms, sem, state, on_progress, metrics,
            ))
            for host in hosts
        ]
        try:
            if host_tasks:
                await asyncio.gather(*host_tasks)
        except MemoryPressureError:
            state.finish(ScanPhase.FAILED)
            raise
        finally:
            for t in host_tasks:
                if not t.done():
                    t.cancel()
            if host_tasks:
                await asyncio.gather(*host_tasks, return_exceptions=True)

        await self._drain_progress()
        if state.completed < state.total:
            log.info("scan stopped after %d/%d probes", state.completed, state.total)
            state.finish(ScanPhase.CANCELLED)
        else:
            state.finish(ScanPhase.COMPLETED)
        return state.results

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _run_host(
        self,
        host: str,
        groups: Sequence[Sequence[int]],
        timeout_ms: int,
        sem: asyncio.Semaphore,
        state: ScanState,
        on_progress: Optional[ProgressFn],
        metrics: Optional[MetricsCollector],
    ) -> None:
        for index, group in enumerate(groups):
            if not state.scanning:
                return
            self._check_memory(metrics)
            if index and len(group) >= LARGE_GROUP and self.group_delay_ms:
                await asyncio.sleep(self.group_delay_ms / 1000.0)
            await self._run_group(host, group, timeout_ms, sem,
                                  state, on_progress, metrics)

    async def _run_group(
        self,
        host: str,
        group: Sequence[int],
        timeout_ms: int,
        sem: asyncio.Semaphore,
        state: ScanState,
        on_progress: Optional[ProgressFn],
        metrics: Optional[MetricsCollector],
    ) -> None:
        tasks = []
        try:
            for port in group:
                await sem.acquire()
                if not state.scanning:
                    sem.release()
                    break
                state.active_workers += 1
                if metrics is not None:
                    metrics.record_workers(state.active_workers)
                tasks.append(asyncio.ensure_future(
                    self._worker(host, port, timeout_ms, sem, state, on_progress, metrics)
                ))
            if tasks:
                await asyncio.gather(*tasks)
        finally:
            # No probe outlives its group, even when the scan task is cancelled
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _worker(
        self,
        host: str,
        port: int,
        timeout_ms: int,
        sem: asyncio.Semaphore,
        state: ScanState,
        on_progress: Optional[ProgressFn],
        metrics: Optional[MetricsCollector],
    ) -> None:
        try:
            result = await self._probe(host, port, timeout_ms)
        finally:
            state.active_workers -= 1
            sem.release()
        self._complete(result, state, on_progress, metrics)

    @staticmethod
    def _complete(
        result: ProbeResult,
        state: ScanState,
        on_progress: Optional[ProgressFn],
        metrics: Optional[MetricsCollector],
    ) -> None:
        state.results.append(result)
        state.completed += 1
        if metrics is not None:
            metrics.observe(result)
        if on_progress is not None:
            # Runs on a later loop iteration, never inside admission
            asyncio.get_running_loop().call_soon(
                _notify, on_progress, state.completed, state.total,
            )

    @staticmethod
    async def _drain_progress() -> None:
        """Let queued progress callbacks run before the scan returns."""
        loop = asyncio.get_running_loop()
        flushed = loop.create_future()
        loop.call_soon(flushed.set_result, None)
        await flushed

    def _check_memory(self, metrics: Optional[MetricsCollector]) -> None:
        if self._memory is None:
            return
        used = self._memory.check()
        if metrics is not None:
            metrics.sample_memory(used)


def _notify(on_progress: ProgressFn, completed: int, total: int) -> None:
    try:
        on_progress(completed, total)
    except Exception:
        log.exception("progress callback failed")

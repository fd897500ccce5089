"""
core/probe.py
One TCP connect attempt against one (host, port).

  connected within timeout   → OPEN    (response time = connect time)
  refused / unreachable / DNS → CLOSED  (response time = elapsed)
  no answer within timeout   → TIMEOUT (response time = timeout)

Never raises for network conditions and never retries. The stream is
closed on every path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from core.models import ProbeResult
from core.service_fingerprint import BannerClassifier, close_stream
from utils.constants import BANNER_TIMEOUT_MS, PortStatus

log = logging.getLogger("portprobe.probe")

_default_classifier = BannerClassifier()


def banner_timeout(timeout_ms: int) -> int:
    """Secondary timeout for the banner exchange."""
    return min(BANNER_TIMEOUT_MS, timeout_ms)


async def probe_port(
    host: str,
    port: int,
    timeout_ms: int,
    grab_banners: bool = True,
    classifier: Optional[BannerClassifier] = None,
) -> ProbeResult:
    """Attempt a TCP connection to host:port. Returns ProbeResult."""
    classifier = classifier or _default_classifier
    default_service = classifier.default_service(port)

    t0 = time.monotonic()
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout_ms / 1000.0,
        )
    except asyncio.TimeoutError:
        log.debug("%s:%d timeout", host, port)
        return ProbeResult(ip=host, port=port, status=PortStatus.TIMEOUT,
                           service=default_service, response_time_ms=timeout_ms)
    except OSError as exc:
        # ConnectionRefusedError, unreachable network, socket.gaierror
        elapsed = _elapsed_ms(t0)
        log.debug("%s:%d closed (%s)", host, port, exc.__class__.__name__)
        return ProbeResult(ip=host, port=port, status=PortStatus.CLOSED,
                           service=default_service,
                           response_time_ms=min(elapsed, timeout_ms))

    response_ms = _elapsed_ms(t0)
    service = default_service
    banner: Optional[str] = None
    try:
        if grab_banners:
            grabbed = await classifier.read_banner(
                reader, writer, host, port, banner_timeout(timeout_ms),
            )
            service = grabbed.service
            banner = grabbed.banner or None
    finally:
        await close_stream(writer)

    log.debug("%s:%d open (%s) in %dms", host, port, service, response_ms)
    return ProbeResult(
        ip=host,
        port=port,
        status=PortStatus.OPEN,
        service=service,
        banner=banner,
        response_time_ms=response_ms,
    )


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)

"""
core/service_fingerprint.py
Service detection from banners.

Every open port starts with a label from the static port table
(SERVICE_PORTS). After connecting, a priming payload is written for
services that wait for the client (HTTP, SMTP, POP3, IMAP, Redis); FTP, SSH,
MySQL, PostgreSQL and MongoDB greet unprompted. Whatever comes back is
matched against an ordered table of literal substrings. Order matters:
a bare "220" is ambiguous until paired with "FTP", "SMTP" or "POP3".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from utils.constants import (
    BANNER_MAX_CHARS, SERVICE_PORTS, UNKNOWN_SERVICE,
)

log = logging.getLogger("portprobe.fingerprint")


@dataclass
class BannerResult:
    banner:  str
    service: str


# ─── Priming payloads ─────────────────────────────────────────────────────────

_HTTP_PORTS = {80, 8080, 8000, 8888, 443, 8443}
_TLS_HTTP_PORTS = {443}


def priming_payload(port: int, host: str) -> bytes:
    if port in _HTTP_PORTS:
        return (f"GET / HTTP/1.1\r\nHost: {host}\r\n"
                f"Connection: close\r\n\r\n").encode()
    if port in (25, 587):
        return b"EHLO localhost\r\n"
    if port == 110:
        return b"USER test\r\n"
    if port == 143:
        return b"a001 LOGIN test test\r\n"
    if port == 6379:
        return b"INFO\r\n"
    return b""          # FTP, SSH, MySQL, PostgreSQL, MongoDB speak first


# ─── Match table (evaluated top to bottom, first hit wins) ────────────────────

_MATCH_TABLE: List[Tuple[Callable[[str], bool], str]] = [
    (lambda b: "SSH-" in b,                                    "SSH"),
    (lambda b: "220" in b and "FTP" in b,                      "FTP"),
    (lambda b: "220" in b and ("SMTP" in b or "mail" in b),    "SMTP"),
    (lambda b: "220" in b and "POP3" in b,                     "POP3"),
    (lambda b: "* OK" in b and "IMAP" in b,                    "IMAP"),
    (lambda b: "HTTP/" in b,                                   "HTTP"),
    (lambda b: "MySQL" in b,                                   "MySQL"),
    (lambda b: "PostgreSQL" in b,                              "PostgreSQL"),
    (lambda b: "Redis" in b,                                   "Redis"),
    (lambda b: "MongoDB" in b,                                 "MongoDB"),
]


class BannerClassifier:
    """Map a banner (or just a port number) to a service label."""

    def __init__(self, max_chars: int = BANNER_MAX_CHARS):
        self._table = _MATCH_TABLE
        self._max_chars = max_chars

    @staticmethod
    def default_service(port: int) -> str:
        return SERVICE_PORTS.get(port, UNKNOWN_SERVICE)

    def classify(self, port: int, banner: Optional[str]) -> str:
        if not banner:
            return self.default_service(port)
        for predicate, service in self._table:
            if predicate(banner):
                if service == "HTTP" and port in _TLS_HTTP_PORTS:
                    return "HTTPS"
                return service
        return self.default_service(port)

    async def read_banner(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        host: str,
        port: int,
        timeout_ms: int,
    ) -> BannerResult:
        """
        Prime and read a banner on an open stream. Never raises.

        Stops at max_chars bytes, a newline, EOF or the timeout. Bytes that
        arrived before a timeout are kept; a connection error yields the
        port-table label and an empty banner.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000.0
        buf = bytearray()

        try:
            payload = priming_payload(port, host)
            if payload:
                writer.write(payload)
                await asyncio.wait_for(writer.drain(), timeout=timeout_ms / 1000.0)

            while len(buf) < self._max_chars and b"\n" not in buf:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                data = await asyncio.wait_for(reader.read(1024), timeout=remaining)
                if not data:
                    break
                buf.extend(data)
        except asyncio.TimeoutError:
            log.debug("banner timeout on %s:%d after %d bytes", host, port, len(buf))
        except OSError as exc:
            log.debug("banner read failed on %s:%d: %s", host, port, exc)
            return BannerResult("", self.default_service(port))

        banner = buf.decode("utf-8", errors="replace").strip()
        return BannerResult(banner, self.classify(port, banner))

    async def grab_banner(self, host: str, port: int, timeout_ms: int) -> BannerResult:
        """Connect on a fresh socket and read the banner. Never raises."""
        timeout_s = timeout_ms / 1000.0
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout_s,
            )
        except (asyncio.TimeoutError, OSError):
            return BannerResult("", self.default_service(port))

        try:
            return await self.read_banner(reader, writer, host, port, timeout_ms)
        finally:
            await close_stream(writer)


async def close_stream(writer: asyncio.StreamWriter) -> None:
    """Close a stream writer, ignoring errors from a peer that already left."""
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


# ─── Module-level singleton ───────────────────────────────────────────────────

_classifier = BannerClassifier()


def classify(port: int, banner: Optional[str]) -> str:
    """Module-level convenience function."""
    return _classifier.classify(port, banner)


async def grab_banner(host: str, port: int, timeout_ms: int) -> BannerResult:
    return await _classifier.grab_banner(host, port, timeout_ms)

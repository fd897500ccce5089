"""
core/port_parser.py
Port spec parser.

Accepts:
  "80"                 → [80]
  "80,443"             → [80, 443]
  "1-1000"             → [1..1000]
  "22,80-83,443"       → merged & sorted, deduped

Rejects (PortValidationError with a code):
  "abc", "8a"          → INVALID_PORT_NUMBER
  "0", "65536"         → PORT_OUT_OF_RANGE
  "100-50"             → INVALID_RANGE_ORDER
  "1-2-3"              → INVALID_RANGE_FORMAT
"""

from __future__ import annotations

import re
from typing import List, Sequence

from core.exceptions import PortValidationError
from core.models import ParsedPorts, PortRange, ValidationResult
from utils.constants import (
    DANGER_THRESHOLD, PORT_MAX, PORT_MIN, PORT_PRESETS, WARNING_THRESHOLD,
)


# ─── Error codes ──────────────────────────────────────────────────────────────

INVALID_RANGE_FORMAT = "INVALID_RANGE_FORMAT"
INVALID_PORT_NUMBER  = "INVALID_PORT_NUMBER"
PORT_OUT_OF_RANGE    = "PORT_OUT_OF_RANGE"
INVALID_RANGE_ORDER  = "INVALID_RANGE_ORDER"
UNKNOWN_PRESET       = "UNKNOWN_PRESET"


# ─── Parser ───────────────────────────────────────────────────────────────────

class PortParser:
    """
    Parse a comma separated list of ports and "start-end" ranges.

    All errors raise PortValidationError with a human-readable message
    and a machine-readable code.
    """

    _NUMBER_RE = re.compile(r"[0-9]+")

    # ── Public API ────────────────────────────────────────────────────────────

    def parse(self, spec: str) -> ParsedPorts:
        """
        Parse port spec → ParsedPorts.

        Empty or blank input yields an empty ParsedPorts.
        Raises PortValidationError on any invalid token.
        """
        if self.is_empty(spec):
            return ParsedPorts()

        individual: List[int] = []
        ranges: List[PortRange] = []

        for part in spec.strip().split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                ranges.append(self._parse_range(part))
            else:
                individual.append(self._parse_port(part, part))

        ports = set(individual)
        for rng in ranges:
            ports.update(rng)
        expanded = sorted(ports)

        return ParsedPorts(
            individual=individual,
            ranges=ranges,
            expanded=expanded,
            total=len(expanded),
        )

    def validate(self, spec: str) -> ValidationResult:
        """Parse and report errors/warnings. Never raises."""
        try:
            parsed = self.parse(spec)
        except PortValidationError as exc:
            return ValidationResult(is_valid=False, errors=[exc.message])

        warnings: List[str] = []
        count = parsed.total
        if count > DANGER_THRESHOLD:
            warnings.append(
                f"Scanning {count} ports may take a very long time. "
                f"Consider a smaller range."
            )
        elif count > WARNING_THRESHOLD:
            warnings.append(f"Scanning {count} ports may take a while.")

        return ValidationResult(is_valid=True, warnings=warnings, port_count=count)

    @staticmethod
    def is_empty(spec: str) -> bool:
        return not isinstance(spec, str) or not spec.strip()

    @staticmethod
    def preset(name: str) -> str:
        """Return the port spec string of a named preset."""
        try:
            return PORT_PRESETS[name]["ports"]
        except KeyError:
            raise PortValidationError(
                f"Unknown port preset {name!r}. Choose from: {list(PORT_PRESETS)}",
                UNKNOWN_PRESET,
                name,
            ) from None

    @staticmethod
    def format_port_list(ports: Sequence[int], max_display: int = 10) -> str:
        """"22, 80, 443" – or the first max_display ports and a remainder count."""
        if not ports:
            return ""
        if len(ports) <= max_display:
            return ", ".join(str(p) for p in ports)
        shown = ", ".join(str(p) for p in ports[:max_display])
        return f"{shown} and {len(ports) - max_display} more"

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _parse_range(self, token: str) -> PortRange:
        bounds = [b.strip() for b in token.split("-")]
        if len(bounds) != 2:
            raise PortValidationError(
                f"Invalid range format: {token!r} (expected start-end)",
                INVALID_RANGE_FORMAT,
                token,
            )
        start = self._parse_port(bounds[0], token)
        end = self._parse_port(bounds[1], token)
        if start > end:
            raise PortValidationError(
                f"Invalid range {start}-{end}: start port cannot be "
                f"greater than end port",
                INVALID_RANGE_ORDER,
                token,
            )
        return PortRange(start, end)

    def _parse_port(self, text: str, token: str) -> int:
        if not self._NUMBER_RE.fullmatch(text):
            raise PortValidationError(
                f"Invalid port number: {token!r}",
                INVALID_PORT_NUMBER,
                token,
            )
        # more than 5 significant digits is out of range without converting
        digits = text.lstrip("0") or "0"
        port = int(digits) if len(digits) <= 5 else PORT_MAX + 1
        if not (PORT_MIN <= port <= PORT_MAX):
            raise PortValidationError(
                f"Port {digits} out of valid range [{PORT_MIN}, {PORT_MAX}]",
                PORT_OUT_OF_RANGE,
                digits,
            )
        return port


# ── Module-level convenience ──────────────────────────────────────────────────

_default_parser = PortParser()


def parse_ports(spec: str) -> ParsedPorts:
    return _default_parser.parse(spec)


def validate_ports(spec: str) -> ValidationResult:
    return _default_parser.validate(spec)

"""
core/targets.py
Target expansion: "192.168.1.1-10" → 192.168.1.1 … 192.168.1.10.

Octet bounds are not checked here; an address like 10.0.0.300 simply fails
at connect time and is reported as a closed port.
"""

from __future__ import annotations

from typing import List

from core.exceptions import TargetSpecError
from core.models import ScanRequest
from utils.constants import ScanType


def expand_targets(spec: str) -> List[str]:
    """
    Expand a last-octet range into host addresses.

    Specs without "-" (hostnames, IPv4 and IPv6 literals) are returned as
    a one-element list. Raises TargetSpecError if the range is not of the
    form a.b.c.N-M with integer N and M.
    """
    if "-" not in spec:
        return [spec]

    base_ip, _, end_text = spec.partition("-")
    octets = base_ip.strip().split(".")
    if len(octets) != 4:
        raise TargetSpecError(f"Invalid IP range {spec!r}: expected a.b.c.N-M")

    try:
        start = int(octets[3])
        end = int(end_text.strip())
    except ValueError:
        raise TargetSpecError(
            f"Invalid IP range {spec!r}: range bounds must be integers"
        ) from None

    prefix = ".".join(octets[:3])
    return [f"{prefix}.{i}" for i in range(start, end + 1)]


def hosts_for(request: ScanRequest) -> List[str]:
    """Hosts to probe for a request: the target itself or its expanded range."""
    if request.scan_type == ScanType.RANGE:
        return expand_targets(request.target.strip())
    return [request.target.strip()]

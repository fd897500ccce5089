"""
utils/validators.py
Input validation and sanitization functions
"""

import ipaddress
import re
from typing import Tuple

from utils.constants import MIN_TIMEOUT_MS, MAX_TIMEOUT_MS


_RANGE_TARGET_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)\.(\d+)-(\d+)$")
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$"
)


def validate_target(target: str, is_range: bool = False) -> Tuple[bool, str]:
    """
    Validate a scan target.

    Args:
        target: hostname, IPv4/IPv6 literal, or "a.b.c.N-M" when is_range
                (a range target with no "-" is checked as a single host)
        is_range: whether the target is a last-octet range

    Returns:
        (is_valid, error_message) tuple
    """
    if not target or not isinstance(target, str) or not target.strip():
        return (False, "Target must be a non-empty string")

    target = target.strip()

    # A range target without "-" is a single host
    if is_range and "-" in target:
        if not _RANGE_TARGET_RE.match(target):
            return (False, f"Invalid IP range {target!r} (expected a.b.c.N-M)")
        return (True, "")

    try:
        ipaddress.ip_address(target)
        return (True, "")
    except ValueError:
        pass

    if _HOSTNAME_RE.match(target):
        return (True, "")
    return (False, f"Invalid host or IP address: {target!r}")


def validate_timeout(timeout_ms: int) -> Tuple[bool, str]:
    """Timeout must be an integer number of milliseconds in the allowed window."""
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
        return (False, "Timeout must be an integer number of milliseconds")

    if timeout_ms < MIN_TIMEOUT_MS or timeout_ms > MAX_TIMEOUT_MS:
        return (False, f"Timeout {timeout_ms}ms out of range "
                       f"[{MIN_TIMEOUT_MS}-{MAX_TIMEOUT_MS}]")

    return (True, "")


def sanitize_banner(banner: str, max_length: int = 500) -> str:
    """
    Sanitize a service banner for display by:
    - Removing control characters except newlines/tabs
    - Truncating to max_length
    - Collapsing whitespace

    Args:
        banner: Raw banner string
        max_length: Maximum allowed length (default: 500)

    Returns:
        Sanitized banner string
    """
    if not banner or not isinstance(banner, str):
        return ""

    sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]', '', banner)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    sanitized = ' '.join(sanitized.split())

    return sanitized


__all__ = ["validate_target", "validate_timeout", "sanitize_banner"]

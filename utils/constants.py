"""
PortProbe Constants & Enums
Port states, scan profiles, service table and engine limits
"""

from enum import Enum
from dataclasses import dataclass
from typing import Dict


# ─── Port Status ──────────────────────────────────────────────────────────────
class PortStatus(str, Enum):
    OPEN     = "open"
    CLOSED   = "closed"
    FILTERED = "filtered"
    TIMEOUT  = "timeout"


# ─── Scan Types / Methods ─────────────────────────────────────────────────────
class ScanType(str, Enum):
    SINGLE = "single"   # one host, hostname or IP literal
    RANGE  = "range"    # a.b.c.N-M last-octet sweep


class ScanMethod(str, Enum):
    TCP = "tcp"         # full connect (the only implemented method)
    SYN = "syn"
    UDP = "udp"


class ScanPhase(str, Enum):
    IDLE      = "idle"
    RUNNING   = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED    = "failed"


# ─── Scan Profiles ────────────────────────────────────────────────────────────
@dataclass
class ScanProfile:
    """Scan tuning preset: probe timeout, pacing between groups, banners."""
    name: str
    description: str
    timeout_ms: int
    group_delay_ms: int
    grab_banners: bool = True

    def validate(self) -> None:
        if self.timeout_ms < MIN_TIMEOUT_MS:
            raise ValueError(f"Timeout too small (min {MIN_TIMEOUT_MS}ms)")
        if self.timeout_ms > MAX_TIMEOUT_MS:
            raise ValueError(f"Timeout too large (max {MAX_TIMEOUT_MS}ms)")
        if self.group_delay_ms < 0:
            raise ValueError("Group delay must not be negative")


SCAN_PROFILES: Dict[str, ScanProfile] = {
    "fast":     ScanProfile("Fast",     "Quick scan with minimal timeouts",
                            timeout_ms=1000,  group_delay_ms=5),
    "default":  ScanProfile("Default",  "Balanced speed and accuracy",
                            timeout_ms=3000,  group_delay_ms=10),
    "thorough": ScanProfile("Thorough", "Long timeouts with service detection",
                            timeout_ms=5000,  group_delay_ms=50),
    "stealth":  ScanProfile("Stealth",  "Slow and careful pacing",
                            timeout_ms=10000, group_delay_ms=1000),
}

DEFAULT_PROFILE = "default"

# ─── Port Parser Limits ───────────────────────────────────────────────────────
PORT_MIN           = 1
PORT_MAX           = 65535
WARNING_THRESHOLD  = 100    # "may take a while"
DANGER_THRESHOLD   = 1000   # "may take a very long time"

# ─── Probe / Engine Limits ────────────────────────────────────────────────────
DEFAULT_TIMEOUT_MS = 3000
BANNER_TIMEOUT_MS  = 2000
MIN_TIMEOUT_MS     = 100
MAX_TIMEOUT_MS     = 60_000
BANNER_MAX_CHARS   = 100
MAX_WORK_UNITS     = 10_000  # hosts × ports accepted per scan
GROUP_DELAY_MS     = 10
LARGE_GROUP        = 50      # groups this size or larger are paced

MEMORY_HIGH_WATER  = 0.80
MEMORY_CRITICAL    = 0.90

# ─── Well-known services (default labels before any banner arrives) ──────────
SERVICE_PORTS: Dict[int, str] = {
    20: "FTP-Data",
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    465: "SMTPS",
    587: "SMTP",
    993: "IMAPS",
    995: "POP3S",
    1433: "MSSQL",
    1521: "Oracle",
    3306: "MySQL",
    3389: "RDP",
    5432: "PostgreSQL",
    5900: "VNC",
    6379: "Redis",
    8000: "HTTP-Alt",
    8080: "HTTP-Proxy",
    8443: "HTTPS-Alt",
    8888: "HTTP-Alt",
    27017: "MongoDB",
    27018: "MongoDB",
    27019: "MongoDB",
}

UNKNOWN_SERVICE = "Unknown"

# ─── Port Presets ─────────────────────────────────────────────────────────────
PORT_PRESETS: Dict[str, Dict[str, str]] = {
    "popular": {
        "label": "Popular",
        "ports": "22,80,443,3389",
        "description": "SSH, HTTP, HTTPS, RDP",
    },
    "web_servers": {
        "label": "Web servers",
        "ports": "80-90,443,8000-8080,8443",
        "description": "HTTP, HTTPS and alternate web ports",
    },
    "databases": {
        "label": "Databases",
        "ports": "3306,5432,1433,27017,6379",
        "description": "MySQL, PostgreSQL, SQL Server, MongoDB, Redis",
    },
    "mail_servers": {
        "label": "Mail servers",
        "ports": "25,110,143,993,995",
        "description": "SMTP, POP3, IMAP",
    },
    "common_services": {
        "label": "Common services",
        "ports": "21,22,23,25,53,80,110,143,443,993,995",
        "description": "FTP, SSH, Telnet, SMTP, DNS, HTTP, POP3, IMAP, HTTPS",
    },
    "all_ports": {
        "label": "All ports (CAREFUL!)",
        "ports": "1-65535",
        "description": "Every TCP port, very slow",
    },
}

# ─── Layering Contract (hard import rules - enforced by tests) ───────────────
# core  → may import: utils
# utils → may import: stdlib and third-party only
# NEVER: core or utils import main

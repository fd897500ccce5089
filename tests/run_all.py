#!/usr/bin/env python3
"""
tests/run_all.py
Run all PortProbe tests using stdlib only — no pytest needed.

Usage:
    python3 tests/run_all.py
    python3 tests/run_all.py -v        # verbose
    python3 tests/run_all.py --fast    # skip network tests
"""

import sys
import traceback
import tempfile
import ast
import asyncio
import socket
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

PASS = 0
FAIL = 0
SKIP = 0
_verbose = "-v" in sys.argv
_fast    = "--fast" in sys.argv

# ── Helpers ────────────────────────────────────────────────────────────────────

def test(name: str, fn, skip: bool = False):
    global PASS, FAIL, SKIP
    if skip:
        print(f"  ~ {name} [SKIPPED]"); SKIP += 1; return
    try:
        fn()
        if _verbose: print(f"  ✓ {name}")
        PASS += 1
    except Exception as e:
        print(f"  ✗ {name}")
        if _verbose: traceback.print_exc()
        else: print(f"    → {e}")
        FAIL += 1

def section(title: str):
    print(f"\n── {title} {'─'*(50 - len(title))}")

def ae(a, b): assert a == b, f"{a!r} != {b!r}"
def at(v):    assert v, f"Expected True, got {v!r}"
def ar(exc_type, fn):
    try:
        fn()
        raise AssertionError(f"Expected {exc_type.__name__} not raised")
    except exc_type:
        pass

# ═══════════════════════════════════════════════════════════════════════════════
# 1. PORT PARSER
# ═══════════════════════════════════════════════════════════════════════════════
section("Port Parser")
from core.port_parser import PortParser
from core.exceptions import PortValidationError
p = PortParser()

test("single port 80",              lambda: ae(p.parse("80").expanded, [80]))
test("single port 1 (min)",         lambda: ae(p.parse("1").expanded, [1]))
test("single port 65535 (max)",     lambda: ae(p.parse("65535").expanded, [65535]))
test("sorted output",               lambda: ae(p.parse("443,22,80").expanded, [22, 80, 443]))
test("deduplication",               lambda: ae(p.parse("80,80,80").total, 1))
test("whitespace stripped",         lambda: ae(p.parse(" 80 , 443 ").expanded, [80, 443]))
test("range 80-82",                 lambda: ae(p.parse("80-82").expanded, [80, 81, 82]))
test("mixed individual",            lambda: ae(p.parse("22,80-83,443").individual, [22, 443]))
test("mixed expanded",              lambda: ae(p.parse("22,80-83,443").expanded, [22, 80, 81, 82, 83, 443]))
test("mixed total",                 lambda: ae(p.parse("22,80-83,443").total, 6))
test("empty → nothing",             lambda: ae(p.parse("").total, 0))
test("port 0 rejected",             lambda: ar(PortValidationError, lambda: p.parse("0")))
test("port 65536 rejected",         lambda: ar(PortValidationError, lambda: p.parse("65536")))
test("alpha rejected",              lambda: ar(PortValidationError, lambda: p.parse("http")))
test("reverse range rejected",      lambda: ar(PortValidationError, lambda: p.parse("100-50")))
test("1-2-3 rejected",              lambda: ar(PortValidationError, lambda: p.parse("1-2-3")))
test("validate ok",                 lambda: at(p.validate("80,443").is_valid))
test("validate warns > 100",        lambda: ae(len(p.validate("1-200").warnings), 1))
test("validate returns msg",        lambda: at(not p.validate("abc").is_valid and p.validate("abc").errors))

# ═══════════════════════════════════════════════════════════════════════════════
# 2. TARGETS
# ═══════════════════════════════════════════════════════════════════════════════
section("Targets")
from core.targets import expand_targets
from core.exceptions import TargetSpecError

test("range of 10",                 lambda: ae(len(expand_targets("192.168.1.1-10")), 10))
test("range ascending",             lambda: ae(expand_targets("10.0.0.1-3"), ["10.0.0.1", "10.0.0.2", "10.0.0.3"]))
test("single unchanged",            lambda: ae(expand_targets("10.0.0.5"), ["10.0.0.5"]))
test("reversed empty",              lambda: ae(expand_targets("10.0.0.5-3"), []))
test("bad base rejected",           lambda: ar(TargetSpecError, lambda: expand_targets("10.0-5")))

# ═══════════════════════════════════════════════════════════════════════════════
# 3. SERVICE CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════
section("Service Classification")
from core.service_fingerprint import classify

test("SSH banner",                  lambda: ae(classify(22, "SSH-2.0-OpenSSH_8.9"), "SSH"))
test("HTTP on 443 → HTTPS",         lambda: ae(classify(443, "HTTP/1.1 200 OK"), "HTTPS"))
test("HTTP on 80",                  lambda: ae(classify(80, "HTTP/1.1 200 OK"), "HTTP"))
test("FTP before SMTP",             lambda: ae(classify(2121, "220 FTP SMTP"), "FTP"))
test("IMAP",                        lambda: ae(classify(143, "* OK IMAP4 ready"), "IMAP"))
test("no banner → port table",      lambda: ae(classify(3306, None), "MySQL"))
test("unknown port",                lambda: ae(classify(49999, ""), "Unknown"))

# ═══════════════════════════════════════════════════════════════════════════════
# 4. METRICS
# ═══════════════════════════════════════════════════════════════════════════════
section("Metrics")
from core.metrics import MetricsCollector, EngineStatistics
from core.models import ProbeResult
from utils.constants import PortStatus, ScanPhase

def _metrics():
    mc = MetricsCollector()
    mc.start(3)
    mc.observe([ProbeResult("h", 1, PortStatus.OPEN, response_time_ms=10),
                ProbeResult("h", 2, PortStatus.CLOSED),
                ProbeResult("h", 3, PortStatus.TIMEOUT, response_time_ms=30)])
    return mc

test("counts add up",               lambda: (m := _metrics().finalize(), at(m.open_ports + m.closed_ports + m.timeout_ports == m.scanned_ports))[1])
test("average skips zero",          lambda: ae(_metrics().finalize().average_response_time_ms, 20.0))
test("finalize once",               lambda: (mc := _metrics(), mc.finalize(), ar(RuntimeError, mc.finalize))[2])
test("stats success rate",          lambda: (s := EngineStatistics(), s.update(_metrics().finalize()), at(abs(s.success_rate() - 100 / 3) < 0.01))[2])

# ═══════════════════════════════════════════════════════════════════════════════
# 5. CONFIG
# ═══════════════════════════════════════════════════════════════════════════════
section("Config")
from utils.config import load_config, EngineConfig, ConfigError, get_profile

_tmp = Path(tempfile.mkdtemp())
(_tmp / "ok.yaml").write_text("profile: fast\nmemory:\n  limit_mb: 128\n")
(_tmp / "bad.yaml").write_text("profile: [oops\n")

test("missing file defaults",       lambda: ae(load_config(_tmp / "none.yaml"), EngineConfig()))
test("profile loaded",              lambda: ae(load_config(_tmp / "ok.yaml").profile, "fast"))
test("memory limit loaded",         lambda: ae(load_config(_tmp / "ok.yaml").memory_limit_mb, 128))
test("bad yaml raises",             lambda: ar(ConfigError, lambda: load_config(_tmp / "bad.yaml")))
test("all profiles resolve",        lambda: at(all(get_profile(n) for n in ["fast", "default", "thorough", "stealth"])))

# ═══════════════════════════════════════════════════════════════════════════════
# 6. ENGINE (fake probe, no sockets)
# ═══════════════════════════════════════════════════════════════════════════════
section("Scan Engine")
from core.concurrency import MemoryGuard
from core.exceptions import ScanInputError, UnsupportedMethodError
from core.models import ScanRequest
from core.scanner_engine import ScanEngine
from utils.constants import ScanMethod

async def _fake_probe(host, port, timeout_ms):
    await asyncio.sleep(0)
    status = PortStatus.OPEN if port in (22, 80) else PortStatus.CLOSED
    return ProbeResult(host, port, status, response_time_ms=1)

def _engine():
    return ScanEngine(probe=_fake_probe,
                      memory_guard=MemoryGuard(limit_bytes=10**12, sampler=lambda: 1))

def _scan(req, on_progress=None):
    return asyncio.run(_engine().perform_scan(req, on_progress=on_progress))

test("completed scan",              lambda: ae(_scan(ScanRequest("localhost", range(1, 101))).metrics.outcome, ScanPhase.COMPLETED))
test("scanned == results",          lambda: (r := _scan(ScanRequest("localhost", range(1, 101))), ae(r.metrics.scanned_ports, len(r.results)))[1])
test("open ports found",            lambda: ae([x.port for x in _scan(ScanRequest("localhost", (22, 23, 80))).open_ports], [22, 80]))
test("progress ends at 100",        lambda: (seen := [], _scan(ScanRequest("localhost", (1, 2, 3)), seen.append), ae(seen[-1], 100.0))[2])
test("empty target rejected",       lambda: ar(ScanInputError, lambda: _scan(ScanRequest("", (80,)))))
test("no ports rejected",           lambda: ar(ScanInputError, lambda: _scan(ScanRequest("localhost", ()))))
test("SYN rejected",                lambda: ar(UnsupportedMethodError, lambda: _scan(ScanRequest("localhost", (80,), method=ScanMethod.SYN))))

# ═══════════════════════════════════════════════════════════════════════════════
# 7. NETWORK (localhost only)
# ═══════════════════════════════════════════════════════════════════════════════
section("Network Probe")
from core.probe import probe_port

def _closed_port():
    s = socket.socket(); s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]; s.close()
    return port

async def _probe_open():
    async def handler(reader, writer):
        writer.write(b"SSH-2.0-OpenSSH_8.9\r\n")
        await writer.drain()
        await reader.read()
        writer.close()
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        return await probe_port("127.0.0.1", port, 2000)
    finally:
        server.close()
        await server.wait_closed()

test("open port + SSH banner",      lambda: ae(asyncio.run(_probe_open()).service, "SSH"), skip=_fast)
test("closed port",                 lambda: ae(asyncio.run(probe_port("127.0.0.1", _closed_port(), 2000)).status,
                                               PortStatus.CLOSED), skip=_fast)

# ═══════════════════════════════════════════════════════════════════════════════
# 8. LAYERING (import boundary enforcement)
# ═══════════════════════════════════════════════════════════════════════════════
section("Layering Enforcement")
ROOT = Path(__file__).parent.parent
FORBIDDEN = {
    "core":  {"main"},
    "utils": {"core", "main"},
}

def _get_imports(fp: Path) -> list:
    tree = ast.parse(fp.read_text())
    return (
        [n.module for n in ast.walk(tree) if isinstance(n, ast.ImportFrom) and n.module] +
        [a.name for n in ast.walk(tree) if isinstance(n, ast.Import) for a in n.names]
    )

for pkg, forbidden in FORBIDDEN.items():
    violations = []
    for pyfile in (ROOT / pkg).rglob("*.py"):
        for imp in _get_imports(pyfile):
            if imp.split(".")[0] in forbidden:
                violations.append(f"{pyfile.name} imports '{imp}'")
    test(f"{pkg}/ has 0 layering violations",
         lambda v=violations: at(len(v) == 0))
    if violations:
        for v in violations:
            print(f"    VIOLATION: {v}")

# ═══════════════════════════════════════════════════════════════════════════════
# SUMMARY
# ═══════════════════════════════════════════════════════════════════════════════
total = PASS + FAIL + SKIP
print(f"\n{'═' * 55}")
print(f"  {'✓' if FAIL == 0 else '✗'}  {PASS} passed  ·  {FAIL} failed  ·  {SKIP} skipped  ·  {total} total")
print(f"{'═' * 55}")
if FAIL > 0:
    sys.exit(1)

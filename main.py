#!/usr/bin/env python3
"""
PortProbe — Concurrent TCP Port Probing Engine
main.py — CLI entry point

Usage:
  python3 main.py --scan 192.168.1.1
  python3 main.py --scan scanme.example.org --ports 22,80-90,443
  python3 main.py --scan 192.168.1.1-20 --range --preset popular
  python3 main.py --scan 10.0.0.5 --ports 1-1000 --profile fast --no-banner
  python3 main.py --list-presets
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

# Try uvloop for 2-4× speed on Linux/macOS
try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass

from core.exceptions import MemoryPressureError, ScanError
from core.models import ScanReport, ScanRequest
from core.port_parser import PortParser
from core.scanner_engine import ScanEngine
from utils.config import ConfigError, EngineConfig, load_config
from utils.constants import PORT_PRESETS, SCAN_PROFILES, ScanType
from utils.logger import get_logger, set_level
from utils.validators import sanitize_banner

log = get_logger("portprobe")

BANNER = r"""
  ┌───────────────────────────────────────────┐
  │  PortProbe  ·  async TCP connect scanner  │
  └───────────────────────────────────────────┘"""


# ─── Core scan runner ─────────────────────────────────────────────────────────

async def _run_scan(args: argparse.Namespace, cfg: EngineConfig) -> ScanReport:
    parser = PortParser()
    spec = parser.preset(args.preset) if args.preset else args.ports
    for warning in parser.validate(spec).warnings:
        log.warning(warning)

    engine = ScanEngine(config=cfg)
    timeout_ms = args.timeout or engine.profile.timeout_ms
    request = ScanRequest.from_spec(
        args.scan, spec,
        scan_type=ScanType.RANGE if args.range else ScanType.SINGLE,
        timeout_ms=timeout_ms,
    )

    log.info(f"Target   : {request.target}")
    log.info(f"Ports    : {request.port_count}  ({parser.format_port_list(request.ports)})")
    log.info(f"Profile  : {engine.profile.name}")
    log.info(f"Timeout  : {timeout_ms}ms")
    log.info(f"Banners  : {'yes' if engine.profile.grab_banners else 'no'}")

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.stop_scan)
    except NotImplementedError:
        # Windows event loops have no signal handlers
        pass

    last = [-1]

    def on_progress(percent: float) -> None:
        step = int(percent) // 10
        if not args.quiet and step > last[0]:
            last[0] = step
            print(f"\r  Progress: {percent:5.1f}%  ({engine.current_rate():.0f} ports/sec)",
                  end="", flush=True)

    try:
        report = await engine.perform_scan(request, on_progress=on_progress)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        if not args.quiet:
            print()

    _print_report(report)
    return report


# ─── Output ───────────────────────────────────────────────────────────────────

def _print_report(report: ScanReport) -> None:
    m = report.metrics
    print(f"\n{'═'*60}")
    print(f"  SCAN {m.outcome.value.upper()}")
    print(f"{'─'*60}")
    print(f"  Probed       : {m.scanned_ports}/{m.total_ports}")
    print(f"  Open         : {m.open_ports}")
    print(f"  Closed       : {m.closed_ports}")
    print(f"  Timed out    : {m.timeout_ports}")
    print(f"  Duration     : {m.duration_s or 0.0:.2f}s")
    print(f"  Rate         : {m.scan_speed or 0.0:.0f} ports/sec")
    print(f"  Avg response : {m.average_response_time_ms or 0.0:.1f}ms")
    print(f"  Workers      : max {m.max_concurrent_workers}, "
          f"avg {m.average_active_workers:.1f}")
    print(f"{'═'*60}\n")

    open_ports = report.open_ports
    if not open_ports:
        print("  No open ports found")
        return

    current = None
    for r in open_ports:
        if r.ip != current:
            if current is not None:
                print()
            current = r.ip
            print(f"  ┌─ {r.ip}")
            print(f"  │  {'PORT':<8} {'SERVICE':<14} {'RESP':>7}  BANNER")
            print(f"  │  {'─'*58}")
        banner = sanitize_banner(r.banner or "", max_length=40)
        ms = f"{r.response_time_ms}ms"
        print(f"  │  {r.port:<8} {r.service or '':<14} {ms:>7}  {banner}")
    print()


def show_presets() -> None:
    print(f"\n  {'PRESET':<18} {'PORTS':<42} DESCRIPTION")
    print("  " + "─" * 90)
    for key, p in PORT_PRESETS.items():
        print(f"  {key:<18} {p['ports']:<42} {p['description']}")
    print(f"\n  {'PROFILE':<18} {'TIMEOUT':<10} {'DELAY':<10} DESCRIPTION")
    print("  " + "─" * 90)
    for key, p in SCAN_PROFILES.items():
        print(f"  {key:<18} {p.timeout_ms:<10} {p.group_delay_ms:<10} {p.description}")
    print()


# ─── CLI ─────────────────────────────────────────────────────────────────────

def build_cli() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="portprobe",
        description="PortProbe — Concurrent TCP Port Probing Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Port specs:   80  |  80,443  |  1-1000  |  22,80-90,443
Targets:      host.example.org  |  192.168.1.10  |  192.168.1.1-50 (with --range)
Profiles:     fast  default  thorough  stealth

Examples:
  %(prog)s --scan 192.168.1.1
  %(prog)s --scan 192.168.1.1-20 --range --preset popular
  %(prog)s --scan 10.0.0.5 --ports 1-1000 --profile fast --no-banner
  %(prog)s --list-presets
""",
    )
    g = ap.add_argument_group
    s = g("Scan")
    s.add_argument("--scan",       metavar="TARGET",  help="Host, IP address or a.b.c.N-M range")
    s.add_argument("--range",      action="store_true", help="Treat TARGET as a last-octet range")
    s.add_argument("--ports",      metavar="SPEC",    default=PORT_PRESETS["common_services"]["ports"],
                   help="Port spec (default: common services)")
    s.add_argument("--preset",     metavar="NAME",    choices=list(PORT_PRESETS),
                   help="Named port preset (overrides --ports)")
    s.add_argument("--profile",    metavar="NAME",    choices=list(SCAN_PROFILES),
                   help="Scan profile (default from config, else 'default')")
    s.add_argument("--timeout",    metavar="MS",      type=int,
                   help="Connect timeout in milliseconds (100-60000)")
    s.add_argument("--no-banner",  action="store_true", help="Skip banner grabbing")

    ap.add_argument("--list-presets", action="store_true", help="Show port presets and profiles")
    ap.add_argument("--config",    default="config.yaml", metavar="FILE")
    ap.add_argument("--quiet",     action="store_true", help="Suppress progress output")
    ap.add_argument("--verbose",   action="store_true", help="Log every probe outcome")
    ap.add_argument("--no-logo",   action="store_true", help="Hide ASCII banner")
    ap.add_argument("--version",   action="version",   version="PortProbe 1.0")
    return ap


def _apply_args(cfg: EngineConfig, args: argparse.Namespace) -> EngineConfig:
    if args.profile:
        cfg.profile = args.profile
    if args.no_banner:
        cfg.grab_banners = False
    if args.verbose:
        cfg.log_level = "DEBUG"
    elif args.quiet:
        cfg.log_level = "WARNING"
    cfg.validate()
    return cfg


def main() -> None:
    ap   = build_cli()
    if len(sys.argv) == 1:
        ap.print_help(); sys.exit(0)
    args = ap.parse_args()

    if args.list_presets:
        show_presets(); sys.exit(0)

    if not args.scan:
        ap.error("--scan TARGET is required")

    try:
        cfg = _apply_args(load_config(args.config), args)
    except ConfigError as exc:
        log.error(f"Config error: {exc}")
        sys.exit(2)
    set_level(cfg.log_level)

    if not args.no_logo and not args.quiet:
        print(BANNER)

    try:
        asyncio.run(_run_scan(args, cfg))
    except MemoryPressureError as exc:
        log.error(f"Scan aborted after {len(exc.results)} probes: {exc}")
        sys.exit(3)
    except ScanError as exc:
        log.error(f"{exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n  [!] Interrupted by user")
        sys.exit(130)
    except Exception as exc:
        log.exception(f"Fatal error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()

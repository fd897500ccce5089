"""PortProbe Test Suite

Test modules:
    test_port_parser  — Unit tests for core/port_parser.py (all edge cases)
    test_scanner      — Banner classification, target expansion, the TCP
                        probe (local asyncio servers), the concurrency
                        controller and the scan engine
    test_metrics      — Per-scan metrics collector and lifetime statistics
    test_config       — YAML config, scan profiles, validators and logger
    test_layering     — Static import analysis enforcing architectural
                        layering rules (main / core / utils)

Run all tests:
    pytest tests/ -v

Run standalone (no pytest):
    python3 tests/run_all.py
    python3 tests/run_all.py -v       # verbose
    python3 tests/run_all.py --fast   # skip network tests
"""

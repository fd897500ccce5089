"""
utils/config.py
YAML configuration for the scan engine.

Example config.yaml:

    profile: default
    timeout_ms: 3000
    grab_banners: true
    max_work_units: 10000
    group_delay_ms: 10
    memory:
      high_water: 0.80
      critical: 0.90
      limit_mb: null      # null → total system memory
    log_level: INFO
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from utils.constants import (
    DEFAULT_PROFILE, GROUP_DELAY_MS, MAX_WORK_UNITS,
    MEMORY_CRITICAL, MEMORY_HIGH_WATER, SCAN_PROFILES, ScanProfile,
)


class ConfigError(ValueError):
    """Raised when a configuration file or value is invalid."""


@dataclass
class EngineConfig:
    profile:           str = DEFAULT_PROFILE
    timeout_ms:        Optional[int] = None     # None → profile timeout
    grab_banners:      Optional[bool] = None    # None → profile setting
    max_work_units:    int = MAX_WORK_UNITS
    group_delay_ms:    Optional[int] = None     # None → profile delay
    memory_high_water: float = MEMORY_HIGH_WATER
    memory_critical:   float = MEMORY_CRITICAL
    memory_limit_mb:   Optional[int] = None
    log_level:         str = "INFO"

    def scan_profile(self) -> ScanProfile:
        """Resolve the named profile with any explicit overrides applied."""
        base = get_profile(self.profile)
        profile = ScanProfile(
            name=base.name,
            description=base.description,
            timeout_ms=self.timeout_ms if self.timeout_ms is not None else base.timeout_ms,
            group_delay_ms=(self.group_delay_ms if self.group_delay_ms is not None
                            else base.group_delay_ms),
            grab_banners=(self.grab_banners if self.grab_banners is not None
                          else base.grab_banners),
        )
        try:
            profile.validate()
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        return profile

    @property
    def memory_limit_bytes(self) -> Optional[int]:
        if self.memory_limit_mb is None:
            return None
        return self.memory_limit_mb * 1024 * 1024

    def validate(self) -> None:
        if self.max_work_units < 1:
            raise ConfigError("max_work_units must be at least 1")
        if not (0 < self.memory_high_water < self.memory_critical <= 1.0):
            raise ConfigError(
                "memory thresholds must satisfy 0 < high_water < critical <= 1"
            )
        if self.memory_limit_mb is not None and self.memory_limit_mb < 1:
            raise ConfigError("memory.limit_mb must be positive")
        self.scan_profile()


def get_profile(name: str) -> ScanProfile:
    """Look up a scan profile: fast, default, thorough, stealth."""
    key = name.lower()
    if key not in SCAN_PROFILES:
        raise ConfigError(
            f"Unknown scan profile {name!r}. "
            f"Choose from: {list(SCAN_PROFILES)}"
        )
    return SCAN_PROFILES[key]


def config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a parsed YAML mapping."""
    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping, got {type(raw).__name__}")

    data = dict(raw)
    memory = data.pop("memory", None) or {}
    if not isinstance(memory, dict):
        raise ConfigError("'memory' section must be a mapping")
    for key in ("high_water", "critical", "limit_mb"):
        if key in memory:
            data[f"memory_{key}"] = memory[key]

    known = {f.name for f in fields(EngineConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    try:
        cfg = EngineConfig(**data)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
    cfg.validate()
    return cfg


def load_config(path: Union[str, Path, None]) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    A missing file yields the defaults; an unreadable or invalid one raises
    ConfigError.
    """
    if path is None:
        return EngineConfig()

    path = Path(path)
    try:
        text = path.read_text()
    except FileNotFoundError:
        return EngineConfig()
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    return config_from_dict(raw)


__all__ = ["ConfigError", "EngineConfig", "get_profile",
           "config_from_dict", "load_config"]

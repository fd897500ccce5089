"""PortProbe Utils"""
from utils.logger     import get_logger, set_level, log
from utils.validators import validate_target, validate_timeout, sanitize_banner
from utils.constants  import PortStatus, ScanType, ScanMethod, ScanPhase, SCAN_PROFILES
from utils.config     import ConfigError, EngineConfig, get_profile, load_config
__all__ = ["get_logger", "set_level", "log",
           "validate_target", "validate_timeout", "sanitize_banner",
           "PortStatus", "ScanType", "ScanMethod", "ScanPhase", "SCAN_PROFILES",
           "ConfigError", "EngineConfig", "get_profile", "load_config"]

from .loader import build_config, load_config, parse_duration
from .types import (
    BuildConfig,
    ConfigError,
    GateConfig,
    ProbeConfig,
    ServiceConfig,
    UnsupportedConfigFormatError,
)

__all__ = [
    "build_config",
    "load_config",
    "parse_duration",
    "BuildConfig",
    "ConfigError",
    "GateConfig",
    "ProbeConfig",
    "ServiceConfig",
    "UnsupportedConfigFormatError",
]

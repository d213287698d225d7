"""Configuration schemas and YAML loading."""

from newshub.config.error_hints import format_validation_error, get_error_hint
from newshub.config.loader import (
    ConfigValidationError,
    load_engine_config,
    load_sources_config,
)
from newshub.config.schemas import (
    DEFAULT_PRELOAD_ORDER,
    EngineConfig,
    RouteConfig,
    SourceConfig,
    SourcesConfig,
)


__all__ = [
    "DEFAULT_PRELOAD_ORDER",
    "ConfigValidationError",
    "EngineConfig",
    "RouteConfig",
    "SourceConfig",
    "SourcesConfig",
    "format_validation_error",
    "get_error_hint",
    "load_engine_config",
    "load_sources_config",
]

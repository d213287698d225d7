"""YAML configuration loading with validation."""

import hashlib
from pathlib import Path
from typing import TypeVar

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from newshub.config.error_hints import format_validation_error
from newshub.config.schemas import EngineConfig, SourcesConfig


logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigValidationError(Exception):
    """Raised when a configuration file cannot be loaded or validated."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: Error details with "loc", "msg" and "type" keys.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")

    def format_errors(self, *, include_hints: bool = True) -> list[str]:
        """Format each error as a readable line with an optional hint."""
        return [
            format_validation_error(
                err["loc"], err["msg"], err["type"], include_hint=include_hints
            )
            for err in self.errors
        ]


def _load_yaml_file(file_path: Path) -> tuple[dict[str, object], str]:
    content_bytes = file_path.read_bytes()
    checksum = hashlib.sha256(content_bytes).hexdigest()
    parsed = yaml.safe_load(content_bytes.decode("utf-8")) or {}
    if not isinstance(parsed, dict):
        msg = "top level must be a mapping"
        raise yaml.YAMLError(msg)
    return parsed, checksum


def _load_model(file_path: Path | str, model: type[ModelT], file_type: str) -> ModelT:
    path = Path(file_path)
    log = logger.bind(component="config", file_path=str(path), file_type=file_type)
    log.info("loading_config_file")

    try:
        data, checksum = _load_yaml_file(path)
    except FileNotFoundError as e:
        log.error("config_file_not_found", error=str(e))
        raise ConfigValidationError(
            [{"loc": "file", "msg": str(e), "type": "file_not_found"}], str(path)
        ) from e
    except yaml.YAMLError as e:
        log.error("config_yaml_parse_error", error=str(e))
        raise ConfigValidationError(
            [{"loc": "yaml", "msg": str(e), "type": "yaml_parse_error"}], str(path)
        ) from e

    try:
        config = model.model_validate(data)
    except ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(loc) for loc in err["loc"]) or "root",
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        log.error(
            "config_validation_failed",
            validation_error_count=len(errors),
            errors=errors,
        )
        raise ConfigValidationError(errors, str(path)) from e

    log.info("config_file_loaded", file_sha256=checksum)
    return config


def load_engine_config(file_path: Path | str) -> EngineConfig:
    """Load and validate an engine configuration file.

    Args:
        file_path: Path to engine.yaml.

    Returns:
        Validated EngineConfig.

    Raises:
        ConfigValidationError: If the file is missing, unparsable or invalid.
    """
    return _load_model(file_path, EngineConfig, "engine")


def load_sources_config(file_path: Path | str) -> SourcesConfig:
    """Load and validate a sources configuration file.

    Args:
        file_path: Path to sources.yaml.

    Returns:
        Validated SourcesConfig.

    Raises:
        ConfigValidationError: If the file is missing, unparsable or invalid.
    """
    return _load_model(file_path, SourcesConfig, "sources")

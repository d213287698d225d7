"""Application settings powered by pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from newshub.config.schemas import EngineConfig


class AppSettings(BaseSettings):
    """Environment configuration.

    Every engine override is optional; unset values keep the value from
    the engine YAML file (or its defaults).
    """

    model_config = SettingsConfigDict(
        env_prefix="NEWSHUB_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    engine_config_path: Path | None = None
    sources_config_path: Path = Path("config/sources.yaml")
    cache_db_path: Path | None = Field(
        default=None, description="SQLite durable cache; in-memory when unset"
    )
    log_level: str = "INFO"
    json_logs: bool = True
    user_agent: str = "newshub/0.1"

    fetch_timeout_ms: int | None = None
    retry_timeout_ms: int | None = None
    max_retries: int | None = None
    cache_ttl_ms: int | None = None
    durable_timeout_ms: int | None = None
    rate_limit_requests_per_window: int | None = None
    rate_limit_window_ms: int | None = None
    failure_log_size: int | None = None
    preload_stagger_ms: int | None = None
    caller_timeout_ms: int | None = None
    default_limit: int | None = None
    quality_filter_enabled: bool | None = None

    def engine_overrides(self) -> dict[str, int | bool]:
        """Get the engine fields set through the environment."""
        overrides: dict[str, int | bool] = {}
        for name in EngineConfig.model_fields:
            value = getattr(self, name, None)
            if value is not None:
                overrides[name] = value
        return overrides

    def apply_to(self, config: EngineConfig) -> EngineConfig:
        """Overlay environment overrides on an engine config.

        Args:
            config: Base configuration.

        Returns:
            Validated configuration with overrides applied.
        """
        overrides = self.engine_overrides()
        if not overrides:
            return config
        return EngineConfig.model_validate({**config.model_dump(), **overrides})


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()

"""CLI commands for the news engine."""

import json
import logging
import sys
from concurrent.futures import wait
from pathlib import Path

import click
import structlog
from pydantic import ValidationError

from newshub import __version__
from newshub.config import (
    ConfigValidationError,
    EngineConfig,
    load_engine_config,
    load_sources_config,
)
from newshub.engine import NewsEngine, build_engine_from_settings
from newshub.models import Category, FetchResult
from newshub.observability.logging import configure_logging
from newshub.observability.metrics import EngineMetrics
from newshub.preload import CacheStatus, preload_key
from newshub.settings import AppSettings


logger = structlog.get_logger()

CATEGORY_CHOICE = click.Choice([c.value for c in Category], case_sensitive=False)


def _settings_from_context(ctx: click.Context) -> AppSettings:
    settings: AppSettings = ctx.obj["settings"]
    return settings


def _build_engine(ctx: click.Context) -> NewsEngine:
    """Build the engine or exit with readable configuration errors."""
    try:
        return build_engine_from_settings(_settings_from_context(ctx))
    except ConfigValidationError as e:
        _echo_config_errors(e)
        sys.exit(1)
    except ValidationError as e:
        _echo_override_errors(e)
        sys.exit(1)


def _echo_override_errors(error: ValidationError) -> None:
    click.echo("Environment overrides are invalid:", err=True)
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        click.echo(f"  - {location}: {err['msg']}", err=True)


def _echo_config_errors(error: ConfigValidationError) -> None:
    click.echo(f"Configuration validation failed: {error.file_path}", err=True)
    for line in error.format_errors(include_hints=True):
        click.echo(f"  - {line}", err=True)


def _result_to_dict(result: FetchResult) -> dict[str, object]:
    return {
        "provider_label": result.provider_label,
        "origin": result.origin.value,
        "retrieved_at": result.retrieved_at.isoformat(),
        "has_more": result.has_more,
        "total_available": result.total_available,
        "articles": [
            {
                "id": a.id,
                "title": a.title,
                "source": a.source,
                "url": a.url,
                "published_at": a.published_at.isoformat(),
                "category": a.category.value,
            }
            for a in result.articles
        ],
    }


def _echo_status(rows: list[CacheStatus], json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps([r.to_dict() for r in rows], indent=2))
        return
    if not rows:
        click.echo("No cached categories.")
        return
    click.echo("Preload Cache Status")
    click.echo("=" * 40)
    for row in rows:
        state = "valid" if row.valid else "expired"
        click.echo(
            f"  {row.category.value}: {row.item_count} articles, "
            f"{row.age_seconds / 60:.0f} min old, {state} ({row.provider_label})"
        )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--sources",
    "sources_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to sources.yaml (default: NEWSHUB_SOURCES_CONFIG_PATH).",
)
@click.option(
    "--engine-config",
    "engine_config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to engine.yaml with engine tunables.",
)
@click.option(
    "--cache-db",
    "cache_db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite durable cache (in-memory when omitted).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: NEWSHUB_JSON_LOGS or true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.pass_context
def cli(  # noqa: PLR0913
    ctx: click.Context,
    sources_path: Path | None,
    engine_config_path: Path | None,
    cache_db_path: Path | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """NewsHub resilient news aggregation CLI."""
    settings = AppSettings()
    overrides: dict[str, object] = {}
    if sources_path is not None:
        overrides["sources_config_path"] = sources_path
    if engine_config_path is not None:
        overrides["engine_config_path"] = engine_config_path
    if cache_db_path is not None:
        overrides["cache_db_path"] = cache_db_path
    if json_logs is not None:
        overrides["json_logs"] = json_logs
    if overrides:
        settings = settings.model_copy(update=overrides)

    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelNamesMapping().get(
            settings.log_level.upper(), logging.INFO
        )
    configure_logging(level=level, json_format=settings.json_logs)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("category", type=CATEGORY_CHOICE)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of articles (default: engine default_limit).",
)
@click.option(
    "--refresh",
    is_flag=True,
    help="Invalidate cached results before fetching.",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def fetch(
    ctx: click.Context,
    category: str,
    limit: int | None,
    refresh: bool,
    json_output: bool,
) -> None:
    """Fetch ranked articles for CATEGORY."""
    target = Category(category.lower())
    with _build_engine(ctx) as engine:
        if limit is not None:
            result = engine.pipeline.fetch(target, limit)
        elif refresh:
            result = engine.scheduler.refresh(target)
        else:
            result = engine.get_articles(target)
        engine.cache.flush(timeout=engine.config.durable_timeout_ms / 1000.0)

    if json_output:
        click.echo(json.dumps(_result_to_dict(result), indent=2))
        return

    click.echo(f"{result.provider_label} [{result.origin.value}]")
    click.echo("=" * 40)
    for i, article in enumerate(result.articles, start=1):
        published = article.published_at.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{i:>3}. {article.title}")
        click.echo(f"     {article.source} | {published} | {article.url}")


@cli.command()
@click.option(
    "--timeout",
    "timeout_s",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait for preloads (default: stagger and caller budget).",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def preload(ctx: click.Context, timeout_s: float | None, json_output: bool) -> None:
    """Warm the cache for every category in preload order."""
    with _build_engine(ctx) as engine:
        config = engine.config
        if timeout_s is None:
            timeout_s = (
                len(config.preload_category_order) * config.preload_stagger_ms
                + config.caller_timeout_ms
            ) / 1000.0

        tasks = engine.scheduler.start()
        _, pending = wait(tasks, timeout=timeout_s)
        if pending:
            logger.warning(
                "preload_incomplete", component="cli", pending_tasks=len(pending)
            )
        rows = list(engine.scheduler.status().values())

    _echo_status(rows, json_output)
    if not json_output:
        metrics = EngineMetrics.get_instance().to_dict()
        click.echo(
            f"Preloads completed: {metrics['preloads_completed_total']}, "
            f"failed: {metrics['preloads_failed_total']}"
        )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, json_output: bool) -> None:
    """Show preloaded categories stored in the durable cache."""
    with _build_engine(ctx) as engine:
        now = engine.cache.now()
        rows = []
        for category in Category:
            entry = engine.cache.get_durable(preload_key(category))
            if entry is None:
                continue
            rows.append(
                CacheStatus(
                    category=category,
                    age_seconds=max(0.0, entry.age_ms(now) / 1000.0),
                    item_count=len(entry.payload.articles),
                    valid=entry.is_fresh(now),
                    provider_label=entry.payload.provider_label,
                )
            )

    _echo_status(rows, json_output)


@cli.command("validate-config")
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate configuration files without fetching anything."""
    settings = _settings_from_context(ctx)
    try:
        config = (
            load_engine_config(settings.engine_config_path)
            if settings.engine_config_path is not None
            else EngineConfig()
        )
        config = settings.apply_to(config)
        sources = load_sources_config(settings.sources_config_path)
    except ConfigValidationError as e:
        _echo_config_errors(e)
        sys.exit(1)
    except ValidationError as e:
        _echo_override_errors(e)
        sys.exit(1)

    enabled = [s for s in sources.sources if s.enabled]
    click.echo("Configuration is valid!")
    click.echo(f"  Sources: {len(sources.sources)} ({len(enabled)} enabled)")
    click.echo(f"  Explicit routes: {len(sources.routes)}")
    click.echo(f"  Fetch timeout: {config.fetch_timeout_ms} ms")
    click.echo(f"  Cache TTL: {config.cache_ttl_ms} ms")
    click.echo(
        "  Preload order: "
        + ", ".join(c.value for c in config.preload_category_order)
    )


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()

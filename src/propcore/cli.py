"""Command-line interface for PropCore."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import click
import structlog
from rich.console import Console
from rich.table import Table

from propcore import __version__
from propcore.cache import ALL, CATEGORY_PREFIXES
from propcore.config import Config, MonitoringConfig
from propcore.config.config import find_config_file
from propcore.container import DependencyContainer
from propcore.errors import ErrorRecord, InvalidCriteriaError
from propcore.observability import configure_logging
from propcore.pipeline import AcquisitionPipeline

console = Console()
logger = structlog.get_logger(__name__)

T = TypeVar("T")

CATEGORY_CHOICE = click.Choice(sorted(CATEGORY_PREFIXES))


def _load_config(ctx: click.Context) -> Config:
    path: Optional[Path] = ctx.obj.get("config_path") or find_config_file()
    config = Config.from_yaml(path) if path else Config()
    monitoring = config.monitoring.model_copy(update={"log_level": ctx.obj["log_level"]})
    return config.model_copy(update={"monitoring": monitoring})


def _with_pipeline(ctx: click.Context, action: Callable[[AcquisitionPipeline], Awaitable[T]]) -> T:
    """Run one pipeline call inside a container lifecycle."""

    async def runner() -> T:
        container = DependencyContainer(
            ctx.obj.get("config_path"),
            config=_load_config(ctx),
            watch_config=False,
            handle_signals=False,
        )
        async with container.lifecycle():
            pipeline = await container.get_pipeline()
            return await action(pipeline)

    return asyncio.run(runner())


def _emit(payload: Dict[str, Any]) -> None:
    console.print_json(data=payload, default=str)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: str) -> None:
    """PropCore - acquisition and caching of real-estate listings."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level

    # Logs go to stderr so command output stays valid JSON
    configure_logging(MonitoringConfig(log_level=log_level))


@cli.command()
@click.argument("url")
@click.pass_context
def extract(ctx: click.Context, url: str) -> None:
    """Extract the listing fields of a property URL."""
    result = _with_pipeline(ctx, lambda pipeline: pipeline.extract(url))
    _emit(result.to_dict())
    if isinstance(result, ErrorRecord):
        sys.exit(1)


@cli.command()
@click.option("--tipo", required=True, type=click.Choice(["Casa", "Departamento"]))
@click.option("--operacion", required=True, type=click.Choice(["Venta", "Arriendo"]))
@click.option("--ubicacion", required=True, help="Comuna or city as typed in the portal")
@click.option("--max-pages", default=3, show_default=True, type=click.IntRange(1, 3))
@click.option("--precio-minimo", type=float, help="Lower price bound")
@click.option("--precio-maximo", type=float, help="Upper price bound")
@click.option("--moneda", default="CLF", show_default=True, type=click.Choice(["CLF", "CLP", "USD"]))
@click.pass_context
def search(
    ctx: click.Context,
    tipo: str,
    operacion: str,
    ubicacion: str,
    max_pages: int,
    precio_minimo: Optional[float],
    precio_maximo: Optional[float],
    moneda: str,
) -> None:
    """Search Portal Inmobiliario listings."""
    criteria: Dict[str, Any] = {
        "tipo": tipo,
        "operacion": operacion,
        "ubicacion": ubicacion,
        "max_pages": max_pages,
        "moneda": moneda,
    }
    if precio_minimo is not None:
        criteria["precio_minimo"] = precio_minimo
    if precio_maximo is not None:
        criteria["precio_maximo"] = precio_maximo

    try:
        outcome = _with_pipeline(ctx, lambda pipeline: pipeline.search(criteria))
    except InvalidCriteriaError as e:
        raise click.BadParameter(e.message, param_hint=e.parameter) from e
    _emit(outcome.to_dict())
    if isinstance(outcome, ErrorRecord):
        sys.exit(1)


@cli.command()
@click.argument("url")
def classify(url: str) -> None:
    """Name the portal a URL belongs to."""
    pipeline = AcquisitionPipeline(Config())
    _emit({"url": url, "portal": pipeline.classify_portal(url).value})


@cli.command("validate-url")
@click.argument("url")
def validate_url(url: str) -> None:
    """Check a URL without navigating to it."""
    check = AcquisitionPipeline(Config()).validate_url(url)
    _emit(check.to_dict())
    if not check.valid:
        sys.exit(1)


# ----------------------------------------------------------------------
# Cache administration
# ----------------------------------------------------------------------


@cli.group()
def cache() -> None:
    """Inspect and manage the cache."""


@cache.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show cache counters."""

    async def collect(pipeline: AcquisitionPipeline) -> Dict[str, Any]:
        return pipeline.cache_stats()

    data = _with_pipeline(ctx, collect)

    table = Table(title="Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    for name, value in data.items():
        table.add_row(name, str(value))
    console.print(table)


@cache.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Write, read back and delete a throwaway key in each tier."""
    report = _with_pipeline(ctx, lambda pipeline: pipeline.cache_health())
    _emit(report)
    if not report.get("healthy"):
        sys.exit(1)


@cache.command()
@click.argument("category", type=CATEGORY_CHOICE)
@click.pass_context
def info(ctx: click.Context, category: str) -> None:
    """Prefix, TTL and key counts of a category."""
    _emit(_with_pipeline(ctx, lambda pipeline: pipeline.cache_type_info(category)))


@cache.command()
@click.argument("category", type=click.Choice(sorted(CATEGORY_PREFIXES) + [ALL]), default=ALL)
@click.pass_context
def clear(ctx: click.Context, category: str) -> None:
    """Clear one category, or everything."""
    removed = _with_pipeline(ctx, lambda pipeline: pipeline.cache_clear(category))
    _emit({"category": category, "removed": removed})


@cache.command()
@click.argument("category", type=CATEGORY_CHOICE)
@click.argument("key")
@click.pass_context
def get(ctx: click.Context, category: str, key: str) -> None:
    """Fetch a cached value."""
    lookup = _with_pipeline(ctx, lambda pipeline: pipeline.cache_get(category, key))
    _emit({"key": key, "hit": lookup.hit, "tier": lookup.tier, "value": lookup.value})
    if not lookup.hit:
        sys.exit(1)


@cache.command()
@click.argument("category", type=CATEGORY_CHOICE)
@click.argument("key")
@click.pass_context
def delete(ctx: click.Context, category: str, key: str) -> None:
    """Delete a cached value."""
    deleted = _with_pipeline(ctx, lambda pipeline: pipeline.cache_delete(category, key))
    _emit({"key": key, "deleted": deleted})


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

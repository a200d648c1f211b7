"""Command-line interface for the asset ledger."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
import structlog
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import FallbackAssetLoader, JsonFileAssetCache, LoadOutcome
from .catalogue import AssetCategory, content_url, filter_assets, summarize_assets
from .ledger import LedgerReader, Web3LedgerReader
from .reconstruction import AssetViewBuilder, ResourceEnumerator
from .utils.addresses import short_address
from .utils.config import Settings, get_settings
from .utils.errors import AssetLedgerError
from .utils.logging import setup_logging
from .utils.types import Asset

logger = structlog.get_logger(__name__)
console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")

_format_option = click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    help="Output format (table, json)",
    type=click.Choice(["table", "json"]),
)
_no_cache_option = click.option(
    "--no-cache",
    is_flag=True,
    help="Do not fall back to cached assets when the ledger is unreachable",
)


def open_reader(settings: Settings) -> LedgerReader:
    """Create the ledger reader for the configured registry."""
    return Web3LedgerReader.from_config(settings.ledger)


def _run(operation: Callable[[LedgerReader, Settings], Awaitable[T]]) -> T:
    """Open a reader, run an async operation and map errors to click errors."""

    async def runner(settings: Settings) -> T:
        async with open_reader(settings) as reader:
            return await operation(reader, settings)

    try:
        return asyncio.run(runner(get_settings()))
    except AssetLedgerError as e:
        logger.error("Command failed", error=str(e), error_type=type(e).__name__)
        raise click.ClickException(str(e)) from e


def _loader(reader: LedgerReader, settings: Settings, no_cache: bool) -> FallbackAssetLoader:
    cache = None
    if settings.cache.enabled and not no_cache:
        cache = JsonFileAssetCache(settings.cache.directory)
    return FallbackAssetLoader(
        AssetViewBuilder.from_config(reader, settings.ledger),
        cache=cache,
        retry_attempts=settings.app.retry_attempts,
        retry_backoff=settings.app.retry_backoff,
    )


def _print_outcome(outcome: LoadOutcome, assets: list[Asset], output_format: str) -> None:
    if output_format == "json":
        click.echo(
            json.dumps([asset.model_dump(mode="json") for asset in assets], indent=2)
        )
    elif not assets:
        console.print("[yellow]No assets found[/yellow]")
    else:
        table = Table(title="Registered Assets")
        table.add_column("ID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Name", style="magenta")
        table.add_column("Category", style="green")
        table.add_column("Owner", style="blue")
        table.add_column("Created", style="blue")
        table.add_column("Access", justify="right", style="yellow")
        table.add_column("Usage", justify="right", style="yellow")

        for asset in assets:
            usage = str(len(asset.usage_log))
            if asset.usage_error:
                usage += "+"
            table.add_row(
                str(asset.id),
                asset.name,
                asset.category.value,
                short_address(asset.owner),
                asset.created_at.strftime("%Y-%m-%d"),
                str(len(asset.permissions)),
                usage,
            )
        console.print(table)

    if outcome.from_cache:
        saved = outcome.cached_at.isoformat() if outcome.cached_at else "unknown time"
        err_console.print(
            f"[bold yellow]![/bold yellow] Ledger unreachable, showing cached "
            f"assets saved at {saved}: {outcome.error}",
            style="yellow",
        )
    for failure in outcome.failures:
        err_console.print(
            f"[red]✗[/red] Asset {failure.asset_id} could not be loaded "
            f"({failure.kind.value}): {failure.message}"
        )


@click.group()
@click.version_option(version=__version__, prog_name="asset-ledger")
def cli() -> None:
    """Asset Ledger - rebuild registered assets and their permissions from the chain."""
    try:
        setup_logging()
    except AssetLedgerError as e:
        raise click.ClickException(str(e)) from e


@cli.command(name="list")
@_format_option
@click.option("--search", "-s", default=None, help="Search names and descriptions")
@click.option(
    "--category",
    "-c",
    default=None,
    help="Only show one category",
    type=click.Choice([category.value for category in AssetCategory]),
)
@_no_cache_option
def list_assets(
    output_format: str, search: str | None, category: str | None, no_cache: bool
) -> None:
    """List all registered assets."""

    async def operation(reader: LedgerReader, settings: Settings) -> LoadOutcome:
        return await _loader(reader, settings, no_cache).load_all()

    outcome = _run(operation)
    _print_outcome(outcome, filter_assets(outcome.assets, search, category), output_format)


@cli.command()
@click.argument("address", required=True)
@_format_option
@_no_cache_option
def mine(address: str, output_format: str, no_cache: bool) -> None:
    """List assets owned by ADDRESS."""

    async def operation(reader: LedgerReader, settings: Settings) -> LoadOutcome:
        return await _loader(reader, settings, no_cache).load_mine(address)

    outcome = _run(operation)
    _print_outcome(outcome, outcome.assets, output_format)


@cli.command()
@click.argument("address", required=True)
@_format_option
@_no_cache_option
def accessible(address: str, output_format: str, no_cache: bool) -> None:
    """List assets ADDRESS owns or has been granted access to."""

    async def operation(reader: LedgerReader, settings: Settings) -> LoadOutcome:
        return await _loader(reader, settings, no_cache).load_accessible(address)

    outcome = _run(operation)
    _print_outcome(outcome, outcome.assets, output_format)


@cli.command()
@click.argument("asset_id", type=int, required=True)
@_format_option
def show(asset_id: int, output_format: str) -> None:
    """Show one asset with its permissions and usage history."""

    if asset_id < 1:
        raise click.BadParameter("asset ids start at 1", param_hint="ASSET_ID")

    async def operation(reader: LedgerReader, settings: Settings) -> Asset | None:
        return await AssetViewBuilder.from_config(reader, settings.ledger).load_one(
            asset_id
        )

    asset = _run(operation)
    if asset is None:
        if output_format == "json":
            click.echo("null")
        err_console.print(f"[yellow]Asset {asset_id} not found[/yellow]")
        return

    if output_format == "json":
        click.echo(json.dumps(asset.model_dump(mode="json"), indent=2))
        return

    gateway = get_settings().gateway.url
    console.print(f"[bold blue]Asset {asset.id}[/bold blue] [magenta]{asset.name}[/magenta]")
    console.print(f"Type: [cyan]{asset.asset_type}[/cyan] ({asset.category.value})")
    console.print(f"Description: {asset.description}")
    console.print(f"Author: [cyan]{asset.author}[/cyan]")
    console.print(f"Owner: [cyan]{asset.owner}[/cyan]")
    console.print(f"Created: [cyan]{asset.created_at.isoformat()}[/cyan]")
    console.print(f"Download: [cyan]{content_url(asset.content_ref, gateway)}[/cyan]")

    console.print()
    console.print("[bold]Access[/bold]")
    for address in sorted(asset.permissions):
        marker = " (owner)" if asset.is_owned_by(address) else ""
        console.print(f"  {address}{marker}")

    console.print()
    if not asset.usage_log:
        console.print("[yellow]No usage logged[/yellow]")
    else:
        table = Table(title="Usage History")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Actor", style="blue")
        table.add_column("When", style="green")
        table.add_column("Description")
        for entry in asset.usage_log:
            table.add_row(
                str(entry.index),
                short_address(entry.actor),
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                entry.description,
            )
        console.print(table)
    if asset.usage_error:
        console.print(f"[yellow]Usage history incomplete: {asset.usage_error}[/yellow]")


@cli.command()
@_no_cache_option
def stats(no_cache: bool) -> None:
    """Summarize registered assets by category."""

    async def operation(reader: LedgerReader, settings: Settings) -> LoadOutcome:
        return await _loader(reader, settings, no_cache).load_all()

    outcome = _run(operation)
    summary = summarize_assets(outcome.assets)

    table = Table(title="Asset Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Total assets", str(summary["total_assets"]))
    for category, count in summary["category_counts"].items():
        table.add_row(f"  {category}", str(count))
    table.add_row("Distinct owners", str(summary["distinct_owners"]))
    table.add_row("Shared assets", str(summary["shared_assets"]))
    table.add_row("Usage entries", str(summary["total_usage_entries"]))
    console.print(table)
    if outcome.from_cache:
        console.print(f"[yellow]Statistics computed from cached assets: {outcome.error}[/yellow]")


@cli.command()
@click.option(
    "--check-ledger",
    is_flag=True,
    help="Check the JSON-RPC endpoint and count registered assets",
)
def status(check_ledger: bool) -> None:
    """Check configuration and ledger connectivity."""
    settings = get_settings()

    console.print("[bold blue]Asset Ledger Status[/bold blue]")
    console.print()
    console.print(f"Network: [cyan]{settings.ledger.network}[/cyan]")
    console.print(f"Endpoint: [cyan]{settings.ledger.endpoint}[/cyan]")
    contract = settings.ledger.contract_address or "[red]not configured[/red]"
    console.print(f"Contract: [cyan]{contract}[/cyan]")
    cache_state = str(settings.cache.directory) if settings.cache.enabled else "disabled"
    console.print(f"Cache: [cyan]{cache_state}[/cyan]")
    console.print(f"Log level: [cyan]{settings.app.log_level}[/cyan]")

    if not check_ledger:
        return

    console.print()
    console.print("Checking ledger connection...")

    async def operation(reader: LedgerReader, settings: Settings) -> dict[str, Any]:
        if not await reader.is_connected():
            return {"connected": False, "count": None}
        count = await ResourceEnumerator(reader).count()
        return {"connected": True, "count": count}

    result = _run(operation)
    if result["connected"]:
        console.print("[green]✓[/green] Ledger reachable")
        console.print(f"Registered assets: [cyan]{result['count']}[/cyan]")
    else:
        console.print(f"[red]✗[/red] Ledger unreachable at {settings.ledger.endpoint}")


def main() -> None:
    """Entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")


if __name__ == "__main__":
    main()

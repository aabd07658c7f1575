"""
Command-line interface for the weekly DCA backtester.

Provides commands for:
- add / remove / list: Manage the tracked symbols
- config: Show or edit the weekly contribution and start date
- run: Fetch prices, simulate every symbol and print the portfolio
- cache clear: Drop all cached price series
"""

import sys
from pathlib import Path
from typing import Optional

import click

from dca_sim.config import (
    DEFAULT_WORKSPACE_FILE,
    ConfigurationError,
    load_workspace,
    parse_simulation_config,
    save_workspace,
)
from dca_sim.data import save_all
from dca_sim.data.providers import (
    CsvDataProvider,
    DataProviderError,
    FileStore,
    MarketDataSource,
    MemoryStore,
    PriceCache,
    get_alphavantage_source,
)
from dca_sim.logging import get_logger
from dca_sim.models import SimulationResult, Workspace, normalize_symbol
from dca_sim.simulation import Backtester


def _load(ctx: click.Context) -> Workspace:
    try:
        return load_workspace(ctx.obj["workspace_path"])
    except ConfigurationError as e:
        click.echo(f"Error loading workspace: {e}", err=True)
        sys.exit(1)


def _resolve(ctx: click.Context, path: str) -> Path:
    """Resolve a workspace-relative path next to the workspace file."""
    resolved = Path(path)
    if resolved.is_absolute():
        return resolved
    return Path(ctx.obj["workspace_path"]).parent / resolved


def _cache_for(ctx: click.Context, workspace: Workspace) -> PriceCache:
    return PriceCache(
        store=FileStore(_resolve(ctx, workspace.cache_dir)),
        ttl_ms=workspace.cache_ttl_hours * 60 * 60 * 1000,
    )


def _format_row(result: SimulationResult) -> str:
    return (
        f"  {result.symbol:<8}"
        f" ${result.total_invested:>12,.2f}"
        f" ${result.current_value:>12,.2f}"
        f" {result.total_shares:>12,.4f}"
        f" ${result.average_cost:>10,.2f}"
        f" ${result.current_price:>10,.2f}"
        f" {result.total_return_percent:>+9.2f}%"
    )


@click.group()
@click.version_option(version="0.1.0", prog_name="dca-sim")
@click.option(
    "--workspace", "-w",
    type=click.Path(dir_okay=False),
    default=str(DEFAULT_WORKSPACE_FILE),
    show_default=True,
    help="Path to the workspace YAML file.",
)
@click.pass_context
def main(ctx: click.Context, workspace: str):
    """
    Weekly DCA Backtester.

    Simulates investing a fixed amount every week in each tracked
    symbol and reports per-symbol and portfolio returns.
    """
    ctx.ensure_object(dict)
    ctx.obj["workspace_path"] = Path(workspace)


@main.command()
@click.argument("symbols", nargs=-1, required=True)
@click.pass_context
def add(ctx: click.Context, symbols: tuple[str, ...]):
    """Start tracking one or more SYMBOLS."""
    workspace = _load(ctx)
    logger = get_logger(_resolve(ctx, workspace.event_log))

    for raw in symbols:
        try:
            symbol = normalize_symbol(raw)
        except ValueError as e:
            click.echo(f"Invalid symbol {raw!r}: {e}", err=True)
            sys.exit(1)

        if symbol in workspace.symbols:
            click.echo(f"{symbol} is already tracked")
            continue

        workspace.symbols.append(symbol)
        logger.log_symbol_added(symbol)
        click.echo(f"Added {symbol}")

    save_workspace(workspace, ctx.obj["workspace_path"])


@main.command()
@click.argument("symbols", nargs=-1, required=True)
@click.pass_context
def remove(ctx: click.Context, symbols: tuple[str, ...]):
    """Stop tracking one or more SYMBOLS."""
    workspace = _load(ctx)
    logger = get_logger(_resolve(ctx, workspace.event_log))

    for raw in symbols:
        try:
            symbol = normalize_symbol(raw)
        except ValueError as e:
            click.echo(f"Invalid symbol {raw!r}: {e}", err=True)
            sys.exit(1)

        if symbol not in workspace.symbols:
            click.echo(f"{symbol} is not tracked")
            continue

        workspace.symbols.remove(symbol)
        logger.log_symbol_removed(symbol)
        click.echo(f"Removed {symbol}")

    save_workspace(workspace, ctx.obj["workspace_path"])


@main.command(name="list")
@click.pass_context
def list_symbols(ctx: click.Context):
    """Show the tracked symbols and simulation settings."""
    workspace = _load(ctx)
    cache = _cache_for(ctx, workspace)

    click.echo(f"Weekly contribution: ${workspace.config.weekly_contribution:,.2f}")
    click.echo(f"Start date:          {workspace.config.start_date}")
    click.echo()

    if not workspace.symbols:
        click.echo("No symbols tracked. Add one with: dca-sim add AAPL")
        return

    click.echo(f"Tracked symbols ({len(workspace.symbols)}):")
    for symbol in workspace.symbols:
        status = "cached" if cache.get(symbol) is not None else "not cached"
        click.echo(f"  {symbol:<8} {status}")


@main.command()
@click.option(
    "--contribution", "-c",
    type=str,
    default=None,
    help="Amount invested every week.",
)
@click.option(
    "--start-date", "-s",
    type=str,
    default=None,
    help="First investment date (YYYY-MM-DD).",
)
@click.pass_context
def config(ctx: click.Context, contribution: Optional[str], start_date: Optional[str]):
    """Show or update the global simulation settings."""
    workspace = _load(ctx)

    if contribution is not None or start_date is not None:
        try:
            workspace.config = parse_simulation_config(
                workspace.config,
                weekly_contribution=contribution,
                start_date=start_date,
            )
        except ConfigurationError as e:
            click.echo(f"Invalid configuration: {e}", err=True)
            sys.exit(1)

        save_workspace(workspace, ctx.obj["workspace_path"])
        get_logger(_resolve(ctx, workspace.event_log)).log_config_updated(workspace.config)

    click.echo(f"Weekly contribution: ${workspace.config.weekly_contribution:,.2f}")
    click.echo(f"Start date:          {workspace.config.start_date}")


@main.command()
@click.option(
    "--provider", "-p",
    type=click.Choice(["alphavantage", "csv"]),
    default="alphavantage",
    show_default=True,
    help="Market data provider.",
)
@click.option(
    "--data-dir", "-d",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory of <SYMBOL>.csv files (csv provider).",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Write results, histories and the portfolio history as CSV.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of concurrent fetches.",
)
@click.pass_context
def run(
    ctx: click.Context,
    provider: str,
    data_dir: Optional[str],
    output_dir: Optional[str],
    workers: int,
):
    """
    Run the backtest for every tracked symbol.

    Fetches weekly prices (cached for the configured TTL), simulates the
    weekly contribution and prints per-symbol and portfolio results.
    Symbols the provider does not recognize are removed from the workspace.
    """
    workspace = _load(ctx)

    if not workspace.symbols:
        click.echo("No symbols tracked. Add one with: dca-sim add AAPL")
        return

    try:
        if provider == "csv":
            if data_dir is None:
                click.echo("--data-dir is required with the csv provider", err=True)
                sys.exit(1)
            source = MarketDataSource(
                CsvDataProvider(data_dir),
                PriceCache(store=MemoryStore()),
            )
        else:
            source = get_alphavantage_source(
                cache_dir=str(_resolve(ctx, workspace.cache_dir)),
                ttl_hours=workspace.cache_ttl_hours,
            )
    except ConfigurationError as e:
        click.echo(f"Error configuring provider: {e}", err=True)
        sys.exit(1)

    logger = get_logger(_resolve(ctx, workspace.event_log))
    backtester = Backtester(
        source,
        workspace.config,
        symbols=workspace.symbols,
        event_logger=logger,
        max_workers=workers,
    )

    click.echo(f"Fetching weekly prices for {len(workspace.symbols)} symbol(s) from {source.name}...")
    try:
        backtester.refresh()
    except DataProviderError as e:
        click.echo(f"Error fetching market data: {e}", err=True)
        sys.exit(1)

    dropped = [s for s in workspace.symbols if s not in backtester.tracked_symbols]
    if dropped:
        for symbol in dropped:
            click.echo(f"Removed unknown symbol: {symbol}")
        workspace.symbols = list(backtester.tracked_symbols)
        save_workspace(workspace, ctx.obj["workspace_path"])

    for symbol, message in backtester.errors.items():
        click.echo(f"  {symbol}: {message}", err=True)

    results = backtester.results
    snapshot = backtester.snapshot
    logger.log_simulation_completed(backtester.config, results, snapshot)

    if not results:
        click.echo("No price data available for any tracked symbol.")
        return

    click.echo()
    click.echo(
        f"Weekly ${backtester.config.weekly_contribution:,.2f} since {backtester.config.start_date}:"
    )
    click.echo(
        f"  {'Symbol':<8} {'Invested':>13} {'Value':>13} {'Shares':>12}"
        f" {'Avg Cost':>11} {'Price':>11} {'Return':>10}"
    )
    for result in results:
        click.echo(_format_row(result))

    click.echo()
    click.echo("Portfolio:")
    click.echo(f"  Total invested:  ${snapshot.total_invested:,.2f}")
    click.echo(f"  Portfolio value: ${snapshot.current_value:,.2f} ({snapshot.total_return_percent:+.2f}%)")
    click.echo(f"  Net profit/loss: ${snapshot.net_profit:,.2f}")
    click.echo(f"  Active positions: {len(results)}")

    if output_dir:
        paths = save_all(results, snapshot, output_dir)
        click.echo()
        click.echo(f"  Results saved: {len(paths)} file(s) in {output_dir}")


@main.group()
def cache():
    """Manage the price cache."""
    pass


@cache.command(name="clear")
@click.pass_context
def cache_clear(ctx: click.Context):
    """Remove every cached price series."""
    workspace = _load(ctx)
    _cache_for(ctx, workspace).clear()
    click.echo("Price cache cleared")


if __name__ == "__main__":
    main()

"""CLI command definitions for the OOH sector terminal."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from ooh_terminal.domain.models.sector import Category
from ooh_terminal.domain.services.parsing import format_age, format_currency_short, format_multiple, format_percent
from ooh_terminal.settings.config import Config
from ooh_terminal.settings.loader import load_settings
from ooh_terminal.utils.logging import configure_logging
from ooh_terminal.workflows.context import build_context
from ooh_terminal.workflows.orchestrator import RefreshOrchestrator

T = TypeVar("T")

console = Console()
app = typer.Typer(help="Keep the out-of-home advertising sector dashboard supplied with fresh data.")


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands."""

    config: Config
    orchestrator: RefreshOrchestrator


def _init_context(debug_override: Optional[bool] = None) -> AppContext:
    """Create a context with configuration, logging, and orchestrator wiring."""
    config = load_settings(debug_override)
    configure_logging(debug=config.debug)
    orchestrator = RefreshOrchestrator(build_context(config))
    return AppContext(config=config, orchestrator=orchestrator)


def _run(context: AppContext, operation: Awaitable[T]) -> T:
    async def runner() -> T:
        try:
            return await operation
        finally:
            await context.orchestrator.aclose()

    return asyncio.run(runner())


def _parse_category(value: str) -> Category:
    try:
        return Category(value.lower())
    except ValueError:
        choices = ", ".join(c.value for c in Category)
        raise typer.BadParameter(f"Unknown category {value!r}; choose from {choices}") from None


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
) -> None:
    """Attach the lazily constructed application context to Typer."""
    ctx.obj = _init_context(debug_override=debug)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show freshness, loading and error state for every category."""
    context: AppContext = ctx.obj
    orchestrator = context.orchestrator
    snapshot = orchestrator.snapshot
    now = time.time()

    table = Table(title=f"Data freshness (revision {snapshot.revision}, {snapshot.last_updated or 'never updated'})")
    table.add_column("Category", style="cyan")
    table.add_column("Last success")
    table.add_column("Window (s)", justify="right")
    table.add_column("Stale")
    table.add_column("Last error")

    windows = orchestrator.windows()
    for category in Category:
        state = orchestrator.status(category)
        stale = orchestrator.is_stale(category)
        table.add_row(
            category.value,
            format_age(state.last_success, now),
            str(windows.get(category.value, "?")),
            "[yellow]yes[/yellow]" if stale else "[green]no[/green]",
            format_age(state.last_error, now) if state.last_error else "-",
        )
    console.print(table)

    ai = snapshot.ai_status
    console.print(
        f"AI status: last success {format_age(ai.last_success, now)}, "
        f"last error {format_age(ai.last_error, now)}"
    )
    _close(context)


@app.command()
def companies(ctx: typer.Context) -> None:
    """List tracked companies with quotes and forward multiples."""
    context: AppContext = ctx.obj
    _print_companies(context)
    _close(context)


@app.command()
def refresh(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="financials, fundamentals, ratings, news, highlights, sentiment, docs or calendar"),
    tickers: Optional[List[str]] = typer.Option(None, "--ticker", "-t", help="Restrict the refresh to these tickers."),
) -> None:
    """Refresh one category now, regardless of its freshness window."""
    context: AppContext = ctx.obj
    resolved = _parse_category(category)
    with console.status(f"[bold cyan]Refreshing {resolved.value}..."):
        _run(context, context.orchestrator.refresh(resolved, tickers or None))
    _print_outcome(context, resolved)


@app.command()
def sync(ctx: typer.Context) -> None:
    """Refresh every category whose freshness window has elapsed."""
    context: AppContext = ctx.obj
    stale = [c for c in Category if context.orchestrator.is_stale(c)]
    if not stale:
        console.print("[green]Everything is fresh.[/green]")
        _close(context)
        return
    with console.status(f"[bold cyan]Refreshing {len(stale)} stale categories..."):
        _run(context, context.orchestrator.refresh_stale())
    for category in stale:
        _print_outcome(context, category)


@app.command()
def add(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Ticker of the company to start tracking, e.g. OUT"),
) -> None:
    """Start tracking a company if the provider can resolve it."""
    context: AppContext = ctx.obj
    with console.status(f"[bold cyan]Resolving {identifier}..."):
        try:
            snapshot = _run(context, context.orchestrator.add_entity(identifier))
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
    outcome = context.orchestrator.status(Category.FUNDAMENTALS)
    if outcome.last_error is not None:
        console.print(f"[red]Could not refresh {identifier}: {outcome.message}[/red]")
        raise typer.Exit(code=1)
    company = snapshot.company(identifier)
    if company is None:
        console.print(f"[yellow]{identifier} could not be resolved; nothing was added.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]Tracking {company.name} ({company.ticker}).[/green]")


@app.command()
def history(
    ctx: typer.Context,
    period: str = typer.Argument("1M", help="1M, 3M, 6M or 1Y"),
    tickers: Optional[List[str]] = typer.Argument(None, help="Tickers; defaults to every tracked company."),
) -> None:
    """Show cached or freshly fetched price history."""
    context: AppContext = ctx.obj
    try:
        with console.status(f"[bold cyan]Loading {period.upper()} price history..."):
            prices = _run(context, context.orchestrator.price_history(period.upper(), tickers or None))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    table = Table(title=f"Price history ({prices.period})")
    table.add_column("Ticker", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Last", justify="right")
    table.add_column("Change", justify="right")
    for series in prices.series:
        if not series.points:
            continue
        first, last = series.points[0], series.points[-1]
        move = (last.price / first.price - 1) * 100 if first.price else 0.0
        table.add_row(
            series.ticker,
            str(len(series.points)),
            first.date,
            last.date,
            f"{last.price:.2f} {series.currency}",
            format_percent(move),
        )
    console.print(table)
    if not prices.series:
        console.print("[yellow]No price history available.[/yellow]")


@app.command()
def news(
    ctx: typer.Context,
    summarize: Optional[int] = typer.Option(None, "--summarize", "-s", help="Summarize the item at this index."),
) -> None:
    """List news items, optionally summarizing one of them."""
    context: AppContext = ctx.obj
    items = context.orchestrator.snapshot.news
    if summarize is not None:
        if not 0 <= summarize < len(items):
            _close(context)
            raise typer.BadParameter(f"No news item at index {summarize}")
        item = items[summarize]
        with console.status("[bold cyan]Summarizing..."):
            text = _run(context, context.orchestrator.summarize_news(item))
        console.rule(item.title)
        console.print(text)
        return

    table = Table(title="News")
    table.add_column("#", justify="right")
    table.add_column("Source", style="cyan")
    table.add_column("Tag")
    table.add_column("Title")
    table.add_column("When")
    for idx, item in enumerate(items):
        table.add_row(str(idx), item.source, item.tag, item.title, item.date or item.time)
    console.print(table)
    _close(context)


@app.command()
def ask(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question about the tracked companies."),
) -> None:
    """Ask the analyst model a question grounded on the current snapshot."""
    context: AppContext = ctx.obj
    with console.status("[bold cyan]Thinking..."):
        answer = _run(context, context.orchestrator.ask(question))
    console.print(answer)


@app.command()
def plan(ctx: typer.Context) -> None:
    """Display the refresh pipeline stages for quick operator reference."""
    context: AppContext = ctx.obj
    table = Table(title="Refresh Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(context.orchestrator.workflow.describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)
    _close(context)


def _print_outcome(context: AppContext, category: Category) -> None:
    state = context.orchestrator.status(category)
    if state.last_error is not None and (state.last_success is None or state.last_error >= state.last_success):
        console.print(f"[bold red]{category.value}: refresh failed[/bold red] {state.message}")
    else:
        console.print(f"[bold green]{category.value}: refreshed.[/bold green]")


def _print_companies(context: AppContext) -> None:
    snapshot = context.orchestrator.snapshot
    table = Table(title="Tracked companies", show_header=True, header_style="bold magenta")
    table.add_column("Ticker", style="cyan")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Chg", justify="right")
    table.add_column("Mkt cap", justify="right")
    table.add_column("EV", justify="right")
    table.add_column("EV/EBITDA 25", justify="right")
    table.add_column("P/E 25", justify="right")
    table.add_column("Yield", justify="right")
    table.add_column("Rating")
    table.add_column("Upside", justify="right")

    for company in snapshot.companies:
        derived = company.derived
        change_style = "green" if company.change >= 0 else "red"
        table.add_row(
            company.ticker,
            company.name,
            f"{company.price:.2f} {company.currency}" if company.price else "--",
            f"[{change_style}]{company.change:+.2f}%[/{change_style}]",
            format_currency_short(company.market_cap),
            format_currency_short(company.enterprise_value),
            format_multiple(derived.get("ev_ebitda_forward")),
            format_multiple(derived.get("pe_forward")),
            format_percent(derived.get("dividend_yield")),
            company.rating.value,
            format_percent(derived.get("upside")),
        )
    console.print(table)


def _close(context: AppContext) -> None:
    """Release resources for commands that never entered the event loop."""
    asyncio.run(context.orchestrator.aclose())

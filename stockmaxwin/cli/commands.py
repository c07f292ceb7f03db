"""Screening and market data commands."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import typer
from pydantic import BaseModel

from stockmaxwin.core.config import Settings
from stockmaxwin.core.screener import StockMaxWinClient
from stockmaxwin.core.services import get_strategy

from .constants import VALIDATION_EXIT_CODE
from .utils import emit_error, prepare_output, run_command

SCREEN_COLUMNS = [
    "code",
    "name",
    "price",
    "change_pct",
    "amount",
    "turnover_rate",
    "volume_ratio",
    "pe",
    "ma5",
    "ma10",
    "ma20",
    "ma60",
    "ma60_up",
    "macd_histogram",
    "macd_golden_cross",
]
STOCK_COLUMNS = ["code", "name"]
BAR_COLUMNS = ["date", "open", "close", "volume"]
INDEX_COLUMNS = ["code", "name", "price", "change_pct"]


def register(app: typer.Typer) -> None:
    """Register the commands on the provided application."""

    app.command("screen")(screen_command)
    app.command("stocks")(stocks_command)
    app.command("bars")(bars_command)
    app.command("indices")(indices_command)


def get_client(settings: Settings | None) -> Any:
    """Factory hook for obtaining a :class:`StockMaxWinClient` instance."""

    return StockMaxWinClient(settings)


def screen_command(
    ctx: typer.Context,
    top: int | None = typer.Option(None, "--top", "-n", help="Keep the N biggest gainers (0 keeps all)."),
    strategy: str = typer.Option("trend", "--strategy", "-s", help="Strategy: trend or default."),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", help="Worker count override."),
) -> None:
    """Screen the main board and print the selected stocks."""

    try:
        predicate = get_strategy(strategy.strip().lower())
    except ValueError as error:
        emit_error(str(error), "VALIDATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    if top is not None and top < 0:
        emit_error("--top must not be negative", "VALIDATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    formatter, stream, stack, options = prepare_output(ctx)

    async def _run() -> Any:
        async with get_client(options.settings) as client:
            return await client.screen(top_n=top, predicate=predicate, concurrency=concurrency)

    try:
        result = run_command(_run)
        formatter.render(_to_rows(result.selected), stream=stream, columns=SCREEN_COLUMNS)
    finally:
        stack.close()


def stocks_command(ctx: typer.Context) -> None:
    """List every A-share code and name."""

    formatter, stream, stack, options = prepare_output(ctx)

    async def _run() -> Any:
        async with get_client(options.settings) as client:
            return await client.get_all_stocks()

    try:
        stocks = run_command(_run)
        formatter.render(_to_rows(stocks), stream=stream, columns=STOCK_COLUMNS)
    finally:
        stack.close()


def bars_command(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Security code, e.g. 600519."),
    count: int = typer.Option(30, "--count", help="Number of daily bars (max 1000)."),
) -> None:
    """Print recent daily bars for one security."""

    if not code.strip() or count <= 0:
        emit_error("code must not be blank and --count must be positive", "VALIDATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    formatter, stream, stack, options = prepare_output(ctx)

    async def _run() -> Any:
        async with get_client(options.settings) as client:
            return await client.get_history_bars(code.strip(), count)

    try:
        bars = run_command(_run)
        formatter.render(_to_rows(bars), stream=stream, columns=BAR_COLUMNS)
    finally:
        stack.close()


def indices_command(ctx: typer.Context) -> None:
    """Print SSE Composite, SZSE Component and ChiNext quotes."""

    formatter, stream, stack, options = prepare_output(ctx)

    async def _run() -> Any:
        async with get_client(options.settings) as client:
            return await client.get_index_quotes()

    try:
        quotes = run_command(_run)
        formatter.render(_to_rows(quotes), stream=stream, columns=INDEX_COLUMNS)
    finally:
        stack.close()


def _to_rows(items: Iterable[BaseModel]) -> list[Mapping[str, object]]:
    return [item.model_dump(mode="json") for item in items]


__all__ = ["register", "get_client", "screen_command", "stocks_command", "bars_command", "indices_command"]

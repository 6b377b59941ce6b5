"""Typer-based CLI for querying and trading."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import HyperwireError

if TYPE_CHECKING:
    from .di import AppContainer
    from .exchange.dispatcher import SubmitResult


def _load_settings(config_path: Optional[Path] = None):
    from .config import load_settings
    return load_settings(config_path)


def _build_container(settings) -> "AppContainer":
    from .di import build_container
    return build_container(settings)


app = typer.Typer(help="Hyperliquid exchange client")
console = Console()
logger = logging.getLogger(__name__)


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TimeInForce(str, Enum):
    GTC = "Gtc"
    IOC = "Ioc"
    ALO = "Alo"


def run_cli(argv: list[str] | None = None) -> None:
    """Run CLI with optional argv parameter."""
    app(argv)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except HyperwireError as e:
        logger.error("%s", e)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@contextlib.asynccontextmanager
async def _container(config: Optional[Path]):
    container = _build_container(_load_settings(config))
    try:
        yield container
    finally:
        await container.aclose()


def _require_address(container: "AppContainer", address: Optional[str]) -> str:
    address = address or container.account_address
    if not address:
        console.print("[red]Error:[/red] pass --address or configure an account")
        raise typer.Exit(1)
    return address


def _print_result(result: "SubmitResult", title: str) -> None:
    if not result.ok:
        console.print(Panel.fit(
            f"[red]✗ {result.status.value}[/red]\n"
            f"Nonce: {result.nonce}\n"
            f"{result.error}",
            title=title,
        ))
        raise typer.Exit(1)

    response = result.response
    lines = ["[green]✓ accepted[/green]", f"Nonce: {result.nonce}"]
    for status in response.statuses:
        lines.append(repr(status))
    console.print(Panel.fit("\n".join(lines), title=title))


@app.command()
def mids(
    coin: Optional[str] = typer.Option(None, help="Show a single coin"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show mid prices."""
    _run(_mids_async(coin, config))


async def _mids_async(coin: Optional[str], config: Optional[Path]) -> None:
    async with _container(config) as container:
        prices = await container.info.all_mids()

    if coin is not None:
        if coin not in prices:
            console.print(f"[yellow]No mid for {coin}[/yellow]")
            raise typer.Exit(1)
        prices = {coin: prices[coin]}

    table = Table(title="Mid prices")
    table.add_column("Coin", style="cyan")
    table.add_column("Mid", style="green", justify="right")
    for name in sorted(prices):
        table.add_row(name, prices[name])
    console.print(table)


@app.command()
def positions(
    address: Optional[str] = typer.Option(None, help="Account address (defaults to configured account)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List perpetual positions and margin summary."""
    _run(_positions_async(address, config))


async def _positions_async(address: Optional[str], config: Optional[Path]) -> None:
    async with _container(config) as container:
        state = await container.info.user_state(_require_address(container, address))

    entries = [e.get("position", {}) for e in state.get("assetPositions", [])]
    if not entries:
        console.print("[yellow]No open positions[/yellow]")
    else:
        table = Table(title="Positions")
        table.add_column("Coin", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Entry", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("uPnL", style="green", justify="right")
        table.add_column("Leverage", style="magenta")
        for position in entries:
            leverage = position.get("leverage") or {}
            table.add_row(
                position.get("coin", ""),
                str(position.get("szi", "")),
                str(position.get("entryPx") or "N/A"),
                str(position.get("positionValue", "")),
                str(position.get("unrealizedPnl", "")),
                f"{leverage.get('value', '')}x {leverage.get('type', '')}".strip(),
            )
        console.print(table)

    summary = state.get("marginSummary") or {}
    if summary:
        console.print(
            f"\n[bold]Account value:[/bold] {summary.get('accountValue')}  "
            f"[bold]Margin used:[/bold] {summary.get('totalMarginUsed')}"
        )


@app.command("open-orders")
def open_orders(
    address: Optional[str] = typer.Option(None, help="Account address (defaults to configured account)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List resting orders."""
    _run(_open_orders_async(address, config))


async def _open_orders_async(address: Optional[str], config: Optional[Path]) -> None:
    async with _container(config) as container:
        orders = await container.info.open_orders(_require_address(container, address))

    if not orders:
        console.print("[yellow]No open orders[/yellow]")
        return

    table = Table(title="Open orders")
    table.add_column("OID", style="dim")
    table.add_column("Coin", style="cyan")
    table.add_column("Side")
    table.add_column("Size", justify="right")
    table.add_column("Price", justify="right")
    for order in orders:
        side = "buy" if order.get("side") == "B" else "sell"
        style = "green" if side == "buy" else "red"
        table.add_row(
            str(order.get("oid", "")),
            order.get("coin", ""),
            f"[{style}]{side}[/{style}]",
            str(order.get("sz", "")),
            str(order.get("limitPx", "")),
        )
    console.print(table)


@app.command()
def order(
    coin: str = typer.Argument(..., help="Coin, e.g. BTC or PURR/USDC"),
    side: Side = typer.Argument(..., help="buy or sell"),
    size: float = typer.Argument(..., help="Order size"),
    price: float = typer.Argument(..., help="Limit price"),
    tif: TimeInForce = typer.Option(TimeInForce.GTC, help="Time in force"),
    reduce_only: bool = typer.Option(False, "--reduce-only", help="Only reduce an existing position"),
    cloid: Optional[str] = typer.Option(None, help="Client order id (0x + 32 hex)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Place a limit order."""
    _run(_order_async(coin, side, size, price, tif, reduce_only, cloid, config))


async def _order_async(
    coin: str,
    side: Side,
    size: float,
    price: float,
    tif: TimeInForce,
    reduce_only: bool,
    cloid: Optional[str],
    config: Optional[Path],
) -> None:
    from .exchange.actions import LimitOrderType

    async with _container(config) as container:
        exchange = container.require_exchange()
        result = await exchange.order(
            coin,
            side is Side.BUY,
            size,
            price,
            LimitOrderType(tif.value),
            reduce_only=reduce_only,
            cloid=cloid,
        )
    _print_result(result, "Order")


@app.command()
def cancel(
    coin: str = typer.Argument(..., help="Coin of the order"),
    oid: int = typer.Argument(..., help="Exchange order id"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Cancel an order by id."""
    _run(_cancel_async(coin, oid, config))


async def _cancel_async(coin: str, oid: int, config: Optional[Path]) -> None:
    async with _container(config) as container:
        result = await container.require_exchange().cancel(coin, oid)
    _print_result(result, "Cancel")


@app.command()
def leverage(
    coin: str = typer.Argument(..., help="Perpetual coin"),
    value: int = typer.Argument(..., help="Leverage multiple"),
    isolated: bool = typer.Option(False, "--isolated", help="Use isolated instead of cross margin"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Set leverage for a coin."""
    _run(_leverage_async(coin, value, isolated, config))


async def _leverage_async(coin: str, value: int, isolated: bool, config: Optional[Path]) -> None:
    async with _container(config) as container:
        result = await container.require_exchange().update_leverage(coin, value, is_cross=not isolated)
    _print_result(result, "Leverage")


@app.command()
def watch(
    topic: str = typer.Argument(..., help="Topic type, e.g. allMids, l2Book, trades, userFills"),
    coin: Optional[str] = typer.Option(None, help="Coin for market topics"),
    user: Optional[str] = typer.Option(None, help="Address for user topics"),
    interval: Optional[str] = typer.Option(None, help="Candle interval, e.g. 1m"),
    count: int = typer.Option(0, help="Stop after this many messages (0 = until interrupted)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Stream a topic to the console."""
    from .stream.topics import Topic

    try:
        target = Topic(topic, coin=coin, user=user, interval=interval)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    try:
        _run(_watch_async(target, count, config))
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")


async def _watch_async(topic, count: int, config: Optional[Path]) -> None:
    async with _container(config) as container:
        container.stream.add_state_listener(
            lambda state: console.print(f"[dim]stream {state.value}[/dim]")
        )
        received = 0
        async with contextlib.aclosing(container.stream.messages(topic)) as messages:
            async for message in messages:
                console.print_json(json.dumps(message.data))
                received += 1
                if count and received >= count:
                    break


def main():
    """CLI main entry point."""
    app()


if __name__ == "__main__":
    main()

"""
skywallet CLI - inspect history and balance, broadcast raw transactions, edit notes.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from datetime import UTC, datetime
from typing import Any

import typer
from loguru import logger

from skywallet.config import Settings, get_settings
from skywallet.encoding import decode_transaction
from skywallet.errors import SkyWalletError
from skywallet.units import droplets_to_coins, format_coins
from skywallet.wallet.service import WalletService

app = typer.Typer(
    name="skywallet",
    help="Software and hardware wallet transactions",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _settings(node_url: str | None, log_level: str | None) -> Settings:
    settings = get_settings()
    if node_url:
        settings = settings.model_copy(update={"node_url": node_url})
    setup_logging(log_level or settings.log_level)
    return settings


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except SkyWalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)


@app.command()
def history(
    node_url: str | None = typer.Option(None, "--node-url", envvar="SKYWALLET_NODE_URL"),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the transaction history of all wallets."""
    settings = _settings(node_url, log_level)
    _run(_show_history(settings, limit))


async def _show_history(settings: Settings, limit: int) -> None:
    service = WalletService.from_settings(settings)
    try:
        await service.load_data()
        entries = await service.transactions()
        if not entries:
            print("\nNo transactions.")
            return

        for tx in entries[:limit]:
            when = datetime.fromtimestamp(tx.timestamp, UTC).strftime("%Y-%m-%d %H:%M:%S")
            if tx.internal_transfer:
                kind = "moved"
            elif tx.outgoing:
                kind = "sent"
            else:
                kind = "received"
            print(f"{when}  {tx.txid}")
            print(
                f"  {kind:<8} {format_coins(tx.balance):>16} coins  "
                f"{tx.hours_sent} hours  (burned {tx.hours_burned})"
            )
            if tx.note:
                print(f"  note: {tx.note}")
    finally:
        await service.close()


@app.command()
def balance(
    node_url: str | None = typer.Option(None, "--node-url", envvar="SKYWALLET_NODE_URL"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the balance of every wallet."""
    settings = _settings(node_url, log_level)
    _run(_show_balance(settings))


async def _show_balance(settings: Settings) -> None:
    service = WalletService.from_settings(settings)
    try:
        await service.load_data()
        snapshot = await service.refresh_balance()
        print(f"\nTotal: {format_coins(snapshot.coins)} coins, {snapshot.hours} hours")
        for wallet in service.state.wallets:
            kind = "hardware" if wallet.is_hardware else "software"
            print(f"\n{wallet.label} ({kind})")
            for address in wallet.address_strings():
                entry = snapshot.addresses.get(address)
                coins = format_coins(entry.coins) if entry else "0"
                hours = entry.hours if entry else 0
                print(f"  {address}  {coins:>16} coins  {hours} hours")
    finally:
        await service.close()


@app.command()
def broadcast(
    raw_transaction: str = typer.Argument(..., help="Hex-encoded signed transaction"),
    node_url: str | None = typer.Option(None, "--node-url", envvar="SKYWALLET_NODE_URL"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Broadcast a raw signed transaction."""
    settings = _settings(node_url, log_level)
    _run(_broadcast(settings, raw_transaction))


async def _broadcast(settings: Settings, raw_transaction: str) -> None:
    decoded = decode_transaction(raw_transaction)
    total = sum(o.coins for o in decoded.outputs)
    logger.info(
        f"Broadcasting {decoded.txid}: {len(decoded.inputs)} inputs, "
        f"{len(decoded.outputs)} outputs, {format_coins(droplets_to_coins(total))} coins"
    )
    service = WalletService.from_settings(settings)
    try:
        txid = await service.broadcast_raw_transaction(raw_transaction)
        print(f"\nTransaction sent: {txid}")
    finally:
        await service.close()


@app.command()
def note(
    txid: str = typer.Argument(...),
    text: str = typer.Argument("", help="New note, empty to clear"),
    node_url: str | None = typer.Option(None, "--node-url", envvar="SKYWALLET_NODE_URL"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Set the note of a transaction."""
    settings = _settings(node_url, log_level)
    _run(_set_note(settings, txid, text))


async def _set_note(settings: Settings, txid: str, text: str) -> None:
    service = WalletService.from_settings(settings)
    try:
        saved = await service.update_note(txid, text)
        print(f"\nNote {'set' if saved else 'cleared'} for {txid}")
    finally:
        await service.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

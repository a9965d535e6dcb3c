"""
privwallet CLI - Inspect pockets and run coin selection on a wallet snapshot.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer
from loguru import logger

from privwallet.config import get_settings
from privwallet.snapshot import load_snapshot
from privwallet.wallet.coin_selection import CoinSelectionError, SmartCoinSelector
from privwallet.wallet.models import btc_to_sats, format_sats
from privwallet.wallet.pockets import get_pockets

app = typer.Typer(
    name="privwallet",
    help="Privacy-aware coin selection",
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


@app.command()
def select(
    snapshot_file: Path = typer.Argument(..., help="Wallet snapshot JSON file"),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount to pay in BTC"),
    force: list[str] | None = typer.Option(
        None, "--force", "-f", help="Coin that must be spent (txid:vout), repeatable"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the selection as JSON"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Select the coins to spend for a payment."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    try:
        snapshot = load_snapshot(snapshot_file)
        target = btc_to_sats(amount)
        forced = [snapshot.find_coin(outpoint) for outpoint in force or []]

        selector = SmartCoinSelector.from_settings(
            snapshot.coins, clusters=snapshot.cluster_snapshot(), settings=settings
        )
        selected = selector.select(forced, target)
    except (CoinSelectionError, ValueError, TypeError) as e:
        logger.error(f"Coin selection failed: {e}")
        raise typer.Exit(1)

    total = sum(coin.amount for coin in selected)

    if json_output:
        result = {
            "target": target,
            "total": total,
            "change": total - target,
            "coins": [
                {
                    "txid": coin.txid,
                    "vout": coin.vout,
                    "amount": coin.amount,
                    "script": coin.script,
                }
                for coin in selected
            ],
        }
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(f"\nSelected {len(selected)} coin(s) for {format_sats(target)}:")
    for coin in selected:
        typer.echo(f"  {coin.txid}:{coin.vout}  {coin.amount:>15,} sats  |  {coin.script}")
    typer.echo(f"\nTotal:  {format_sats(total)}")
    typer.echo(f"Change: {format_sats(total - target)}")


@app.command()
def pockets(
    snapshot_file: Path = typer.Argument(..., help="Wallet snapshot JSON file"),
    anon_target: int | None = typer.Option(
        None, "--anon-target", help="Anonymity score at which coins count as private"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """List the wallet's pockets."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    try:
        snapshot = load_snapshot(snapshot_file)
    except ValueError as e:
        logger.error(f"Failed to load snapshot: {e}")
        raise typer.Exit(1)

    wallet_pockets = get_pockets(
        snapshot.coins,
        clusters=snapshot.cluster_snapshot(),
        anon_score_target=anon_target or settings.anon_score_target,
    )

    if not wallet_pockets:
        typer.echo("\nNo coins in snapshot.")
        return

    typer.echo(f"\nFound {len(wallet_pockets)} pocket(s):\n")
    for pocket in wallet_pockets:
        typer.echo(
            f"  {pocket.label_text:<30} {len(pocket.coins):>4} coin(s)  {format_sats(pocket.total)}"
        )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

"""
Command-line interface for the Slugline spender.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import httpx
import typer
from loguru import logger
from slugcore.backends.ord import OrdBackend
from slugcore.constants import DEFAULT_RUNE_NAME
from slugcore.errors import SluglineError
from slugcore.network import NetworkType

from spender.builder import ParentBuilder, ParentBuildResult
from spender.config import SpenderConfig

app = typer.Typer(
    name="slugline-spender",
    help="Slugline spender - build zero-fee rune transactions for searcher sponsoring",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


@app.command("build-tx")
def build_tx(
    payment_address: Annotated[
        str, typer.Option("--payment-address", help="Address funding the payment amount")
    ],
    rune_address: Annotated[
        str, typer.Option("--rune-address", help="Address holding the rune UTXO")
    ],
    destination: Annotated[
        str, typer.Option("--destination", "-d", help="Destination address")
    ],
    amount: Annotated[int, typer.Option("--amount", "-a", help="Amount to send in sats")],
    network: Annotated[
        NetworkType, typer.Option("--network", envvar="SLUGLINE_NETWORK", help="Bitcoin network")
    ] = NetworkType.MAINNET,
    ord_server: Annotated[
        str, typer.Option("--ord-server", envvar="ORD_SERVER", help="ord server URL")
    ] = "http://localhost",
    rune_name: Annotated[
        str, typer.Option("--rune", envvar="RUNE_NAME", help="Rune carried by the parent")
    ] = DEFAULT_RUNE_NAME,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the PSBT (base64) to this file")
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Build an unsigned zero-fee parent transaction and print it as a PSBT."""
    setup_logging(log_level)

    try:
        config = SpenderConfig(
            network=network,
            ord_server=ord_server,
            rune_name=rune_name,
            payment_address=payment_address,
            rune_address=rune_address,
            destination_address=destination,
            amount=amount,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_build(config))
    except SluglineError as e:
        logger.error(e.message)
        raise typer.Exit(1)

    _print_result(result)

    if output:
        output.write_text(result.psbt_base64 + "\n")
        logger.info(f"PSBT written to {output}")


async def _build(config: SpenderConfig) -> ParentBuildResult:
    indexer = OrdBackend(config.ord_server, timeout=config.http_timeout)
    builder = ParentBuilder(indexer, network=config.network, rune=config.rune_name)
    try:
        return await builder.build_parent(
            payment_address=config.payment_address,
            rune_address=config.rune_address,
            destination_address=config.destination_address,
            amount=config.amount,
        )
    finally:
        await indexer.close()


def _print_result(result: ParentBuildResult) -> None:
    tx = result.tx
    total_inputs = sum(u.value for u in result.payment_utxos) + result.asset_utxo.value
    labels = {0: " (P2A anchor)", 1: " (payment)", 2: " (change)"}

    typer.echo("\nTransaction created successfully!")
    typer.echo(f"Transaction ID: {tx.txid}")
    typer.echo(f"Version: {tx.version}")
    typer.echo(f"Inputs: {len(tx.inputs)}")
    typer.echo(f"Outputs: {len(tx.outputs)}")
    for i, out in enumerate(tx.outputs):
        typer.echo(f"  Output {i}: {out.value} sats{labels.get(i, '')}")
    typer.echo(f"Total inputs: {total_inputs} sats")
    typer.echo(f"Total outputs: {tx.total_output_value()} sats")
    typer.echo(f"Fee: {total_inputs - tx.total_output_value()} sats")

    if result.warnings:
        typer.echo("\nRelay warnings:")
        for warning in result.warnings:
            typer.echo(f"  ! {warning}")

    typer.echo("\nRaw transaction hex:")
    typer.echo(tx.to_hex())
    typer.echo("\nPSBT (base64):")
    typer.echo(result.psbt_base64)


@app.command()
def submit(
    psbt: Annotated[
        str | None, typer.Option("--psbt", help="Signed PSBT (base64 or hex) or raw tx hex")
    ] = None,
    psbt_file: Annotated[
        Path | None, typer.Option("--psbt-file", "-f", help="File containing the signed PSBT")
    ] = None,
    searcher_url: Annotated[
        str, typer.Option("--searcher-url", envvar="SEARCHER_URL", help="Searcher base URL")
    ] = "http://127.0.0.1:3000",
    timeout: Annotated[float, typer.Option("--timeout", help="HTTP timeout in seconds")] = 60.0,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Send a signed parent transaction to a searcher for sponsoring."""
    setup_logging(log_level)

    if psbt is None and psbt_file is None:
        logger.error("Provide --psbt or --psbt-file")
        raise typer.Exit(1)

    encoded = psbt if psbt is not None else psbt_file.read_text()  # type: ignore[union-attr]

    try:
        status, body = asyncio.run(_submit(searcher_url, encoded.strip(), timeout))
    except httpx.HTTPError as e:
        logger.error(f"Could not reach searcher at {searcher_url}: {e}")
        raise typer.Exit(1)

    typer.echo(json.dumps(body, indent=2))

    if not body.get("success"):
        logger.error(f"Searcher rejected the transaction (HTTP {status}): {body.get('message')}")
        raise typer.Exit(1)

    parent_txid, child_txid = body["package_txids"]
    logger.info(f"Package accepted: parent {parent_txid}, child {child_txid}")


async def _submit(searcher_url: str, encoded: str, timeout: float) -> tuple[int, dict[str, Any]]:
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(
            f"{searcher_url.rstrip('/')}/submit-psbt", json={"psbt": encoded}
        )
    try:
        body = response.json()
    except ValueError:
        body = {"success": False, "message": response.text}
    return response.status_code, body


def main() -> None:
    app()


if __name__ == "__main__":
    main()

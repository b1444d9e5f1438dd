"""
Command-line interface for the Slugline searcher.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from decimal import Decimal
from typing import Annotated

import typer
from loguru import logger
from slugcore.network import NetworkType

from searcher.config import Settings, get_settings
from searcher.server import SearcherServer
from searcher.service import SearcherService

app = typer.Typer(
    name="slugline-searcher",
    help="Slugline searcher - sponsor zero-fee rune transactions via CPFP",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    logger.remove()

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level.upper(),
        colorize=True,
    )


@app.callback()
def callback() -> None:
    """Slugline searcher - sponsor zero-fee rune transactions via CPFP"""


async def run_searcher(settings: Settings) -> None:
    logger.info("Starting Slugline searcher")
    logger.info(f"Network: {settings.network.value}")
    logger.info(f"Bitcoin Core: {settings.bitcoind_host} (wallet {settings.wallet})")
    logger.info(f"ord server: {settings.ord_server}")
    logger.info(f"Rune: {settings.rune_name}")
    logger.info(f"Fee rate: {settings.fee_rate} sat/vB")

    service = SearcherService.from_settings(settings)
    server = SearcherServer(settings, service)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def shutdown_handler() -> None:
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_handler)

    try:
        await server.start()
        await stop_event.wait()
    finally:
        await server.stop()


@app.command()
def run(
    network: Annotated[
        NetworkType | None,
        typer.Option("--network", help="Bitcoin network (env: NETWORK)"),
    ] = None,
    bitcoind_host: Annotated[
        str | None, typer.Option("--bitcoind-host", help="Bitcoin Core host or URL")
    ] = None,
    bitcoind_port: Annotated[
        int | None, typer.Option("--bitcoind-port", help="RPC port (default: network port)")
    ] = None,
    bitcoind_user: Annotated[
        str | None, typer.Option("--bitcoind-user", help="Bitcoin Core RPC user")
    ] = None,
    bitcoind_password: Annotated[
        str | None, typer.Option("--bitcoind-password", help="Bitcoin Core RPC password")
    ] = None,
    wallet: Annotated[
        str | None, typer.Option("--wallet", help="Bitcoin Core wallet funding the children")
    ] = None,
    fee_rate: Annotated[
        float | None, typer.Option("--fee-rate", help="Package fee rate in sat/vB")
    ] = None,
    ord_server: Annotated[str | None, typer.Option("--ord-server", help="ord server URL")] = None,
    rune_name: Annotated[str | None, typer.Option("--rune", help="Rune to accept")] = None,
    http_host: Annotated[str | None, typer.Option("--host", help="HTTP bind address")] = None,
    http_port: Annotated[int | None, typer.Option("--port", help="HTTP port")] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", "-l", help="Log level")] = None,
) -> None:
    """Run the searcher HTTP service. Options override environment settings."""
    overrides = {
        "network": network,
        "bitcoind_host": bitcoind_host,
        "bitcoind_port": bitcoind_port,
        "bitcoind_user": bitcoind_user,
        "bitcoind_password": bitcoind_password,
        "wallet": wallet,
        "fee_rate": Decimal(str(fee_rate)) if fee_rate is not None else None,
        "ord_server": ord_server,
        "rune_name": rune_name,
        "http_host": http_host,
        "http_port": http_port,
        "log_level": log_level,
    }

    try:
        settings = get_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    setup_logging(settings.log_level)

    try:
        asyncio.run(run_searcher(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

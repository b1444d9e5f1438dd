"""
HTTP endpoint accepting signed parent transactions for sponsoring.
"""

from __future__ import annotations

import contextlib
import json
from typing import Any

from aiohttp import web
from loguru import logger
from slugcore.errors import (
    PackageRejected,
    ResourceFailure,
    RpcFailure,
    SluglineError,
    ValidationFailure,
)

from searcher.config import Settings
from searcher.service import SearcherService

INTERNAL_ERROR = "internal_error"


def status_for_error(error: SluglineError) -> int:
    if isinstance(error, ValidationFailure):
        return 400
    if isinstance(error, PackageRejected):
        return 422
    if isinstance(error, ResourceFailure):
        return 503
    if isinstance(error, RpcFailure):
        return 502
    return 500


def submission_response(
    success: bool,
    message: str,
    error: str | None = None,
    package_txids: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "error": error,
        "package_txids": package_txids,
    }


class SearcherServer:
    def __init__(self, settings: Settings, service: SearcherService) -> None:
        self.settings = settings
        self.service = service
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self._stopping = False
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_post("/submit-psbt", self._handle_submit_psbt)
        self.app.router.add_get("/health", self._handle_health)

    async def _handle_submit_psbt(self, request: web.Request) -> web.Response:
        logger.info("Received PSBT submission")

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response(
                submission_response(False, "Request body is not valid JSON", "malformed_input"),
                status=400,
            )

        encoded = body.get("psbt") if isinstance(body, dict) else None
        if not isinstance(encoded, str) or not encoded.strip():
            return web.json_response(
                submission_response(False, "Missing 'psbt' field", "malformed_input"),
                status=400,
            )

        try:
            result = await self.service.process_submission(encoded)
        except SluglineError as e:
            status = status_for_error(e)
            logger.error(f"Submission failed ({e.kind}): {e.message}")
            return web.json_response(
                submission_response(False, e.message, e.kind), status=status
            )
        except Exception as e:
            logger.exception(f"Unexpected error while processing submission: {e}")
            return web.json_response(
                submission_response(False, f"Internal error: {e}", INTERNAL_ERROR), status=500
            )

        return web.json_response(
            submission_response(
                True, "Package submitted successfully", package_txids=result.txids
            )
        )

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "healthy",
                "network": self.settings.network.value,
                "rune": self.settings.rune_name,
                "fee_rate": str(self.service.fee_rate),
                "reserved_utxos": len(self.service.reservations),
            }
        )

    async def start(self) -> None:
        logger.info(f"Starting searcher on {self.settings.http_host}:{self.settings.http_port}")

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, self.settings.http_host, self.settings.http_port)
        await self.site.start()

        logger.info(
            f"Searcher running at http://{self.settings.http_host}:{self.settings.http_port}"
        )

    async def stop(self) -> None:
        if self._stopping:
            return
        self._stopping = True

        logger.info("Stopping searcher...")

        if self.site:
            with contextlib.suppress(RuntimeError):
                await self.site.stop()
            self.site = None

        if self.runner:
            with contextlib.suppress(RuntimeError):
                await self.runner.cleanup()
            self.runner = None

        await self.service.close()
        logger.info("Searcher stopped")

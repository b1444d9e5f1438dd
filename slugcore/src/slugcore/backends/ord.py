"""
ord indexer backend.

Uses the JSON API of an ord server (``Accept: application/json``) to read
rune balances per output and the outputs of arbitrary transactions.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from slugcore.backends.base import AssetIndexer
from slugcore.errors import RpcFailure
from slugcore.models import UTXO
from slugcore.tx import TxOutput

DEFAULT_ORD_TIMEOUT = 30.0


class OrdBackend(AssetIndexer):
    def __init__(
        self,
        ord_url: str = "http://localhost",
        timeout: float = DEFAULT_ORD_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.ord_url = ord_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _api_call(self, endpoint: str, allow_missing: bool = False) -> Any:
        """
        GET a JSON endpoint of the ord server.

        Returns:
            Decoded JSON, or None for a 404 when ``allow_missing`` is set

        Raises:
            RpcFailure: On transport errors, non-2xx responses or invalid JSON
        """
        url = f"{self.ord_url}/{endpoint}"
        logger.debug(f"ord request: {url}")

        try:
            response = await self.client.get(url, headers={"Accept": "application/json"})
            if allow_missing and response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"ord API call failed: {endpoint} - {e}")
            raise RpcFailure("ord", f"{endpoint}: {e}") from e
        except ValueError as e:
            logger.error(f"ord returned invalid JSON for {endpoint}: {e}")
            raise RpcFailure("ord", f"{endpoint}: invalid JSON response") from e

    async def get_address_outputs(self, address: str) -> list[UTXO]:
        records = await self._api_call(f"outputs/{address}")
        if not isinstance(records, list):
            raise RpcFailure("ord", f"outputs/{address}: expected a list of outputs")

        try:
            utxos = [UTXO.from_ord(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise RpcFailure("ord", f"outputs/{address}: unexpected output record: {e}") from e

        logger.debug(f"ord reports {len(utxos)} outputs for {address}")
        return utxos

    async def get_transaction_output(self, txid: str, vout: int) -> TxOutput | None:
        data = await self._api_call(f"tx/{txid}", allow_missing=True)
        if data is None:
            logger.debug(f"ord does not know transaction {txid}")
            return None

        try:
            outputs = data["transaction"]["output"]
        except (KeyError, TypeError) as e:
            raise RpcFailure("ord", f"tx/{txid}: no outputs in transaction") from e

        if vout >= len(outputs):
            return None

        output = outputs[vout]
        try:
            return TxOutput(
                value=int(output["value"]),
                scriptpubkey=bytes.fromhex(output["script_pubkey"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RpcFailure("ord", f"tx/{txid}: malformed output {vout}: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()

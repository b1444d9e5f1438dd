"""
Bitcoin Core wallet RPC backend.

Talks to ``/wallet/<name>`` so every call acts on the searcher's wallet.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from slugcore.backends.base import WalletNode
from slugcore.errors import RpcFailure
from slugcore.models import UTXO
from slugcore.network import NetworkType, get_network_params

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0


def build_rpc_url(
    host: str, network: NetworkType | str, port: int | None = None, scheme: str = "http"
) -> str:
    """Node RPC base URL, using the network's default port unless one is given."""
    if "://" in host:
        return host.rstrip("/")
    rpc_port = port or get_network_params(network).rpc_port
    return f"{scheme}://{host}:{rpc_port}"


class BitcoinCoreWallet(WalletNode):
    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18443",
        wallet_name: str = "searcher",
        rpc_user: str | None = None,
        rpc_password: str | None = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.wallet_name = wallet_name
        self.rpc_url = f"{rpc_url.rstrip('/')}/wallet/{wallet_name}"
        auth = (rpc_user, rpc_password or "") if rpc_user else None
        self.client = client or httpx.AsyncClient(timeout=timeout, auth=auth)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            RpcFailure: On RPC errors, HTTP errors and timeouts
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise RpcFailure(method, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise RpcFailure(method, str(e)) from e

        # Core reports RPC errors in the body, sometimes with a 500 status
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            error_info = data["error"]
            error_code = error_info.get("code", "unknown")
            error_msg = error_info.get("message", str(error_info))
            logger.error(f"RPC error from {method}: {error_code} {error_msg}")
            raise RpcFailure(method, f"RPC error {error_code}: {error_msg}")

        if response.is_error:
            logger.error(f"RPC call failed: {method} - HTTP {response.status_code}")
            raise RpcFailure(method, f"HTTP {response.status_code}: {response.text}")

        if not isinstance(data, dict):
            raise RpcFailure(method, "invalid JSON-RPC response")

        return data.get("result")

    async def list_unspent(self, min_conf: int = 1) -> list[UTXO]:
        entries = await self._rpc_call("listunspent", [min_conf])
        if not isinstance(entries, list | None):
            raise RpcFailure("listunspent", "expected a list of unspent outputs")

        try:
            utxos = [
                UTXO.from_listunspent(entry)
                for entry in entries or []
                if entry.get("spendable", True)
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise RpcFailure("listunspent", f"unexpected unspent output entry: {e}") from e
        logger.debug(f"Wallet {self.wallet_name} has {len(utxos)} spendable UTXOs")
        return utxos

    async def sign_raw_transaction_with_wallet(
        self, tx_hex: str, prevtxs: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        params: list[Any] = [tx_hex]
        if prevtxs:
            params.append(prevtxs)
        return await self._rpc_call("signrawtransactionwithwallet", params)

    async def submit_package(self, tx_hexes: list[str]) -> dict[str, Any]:
        return await self._rpc_call("submitpackage", [tx_hexes])

    async def close(self) -> None:
        await self.client.aclose()

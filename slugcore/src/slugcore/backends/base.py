"""
Base interfaces for the indexer and node collaborators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from slugcore.models import UTXO
from slugcore.tx import TxOutput


class AssetIndexer(ABC):
    """
    Read-only view of addresses, outputs and rune balances.
    """

    @abstractmethod
    async def get_address_outputs(self, address: str) -> list[UTXO]:
        """Get all outputs (spent and unspent) indexed for an address"""

    @abstractmethod
    async def get_transaction_output(self, txid: str, vout: int) -> TxOutput | None:
        """Get one output of a transaction, None if the transaction or index is unknown"""

    async def close(self) -> None:
        """Close backend connection"""
        pass


class WalletNode(ABC):
    """
    Node wallet used by the searcher to fund, sign and relay packages.
    """

    @abstractmethod
    async def list_unspent(self, min_conf: int = 1) -> list[UTXO]:
        """List spendable wallet UTXOs"""

    @abstractmethod
    async def sign_raw_transaction_with_wallet(
        self, tx_hex: str, prevtxs: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        """Sign wallet inputs; prevtxs describes outputs the node cannot look up"""

    @abstractmethod
    async def submit_package(self, tx_hexes: list[str]) -> dict[str, Any]:
        """Submit an ordered package (parents first)"""

    async def close(self) -> None:
        """Close backend connection"""
        pass

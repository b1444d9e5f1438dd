"""
Validation of submitted parent transactions.

The searcher only commits funds to a parent that:
1. Decodes as a signed transaction (finalized PSBT or raw hex)
2. Has the pay-to-anchor output as output 0 (value 0, script 51024e73)
3. Spends an output carrying the designated rune as its LAST input

Checks run in this order and stop at the first failure. Nothing else in the
transaction is inspected; the node validates the rest at submission.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from slugcore.address import scriptpubkey_to_address
from slugcore.backends.base import AssetIndexer
from slugcore.constants import DEFAULT_RUNE_NAME
from slugcore.contract import asset_input, check_anchor
from slugcore.errors import AssetNotFound, MalformedInput
from slugcore.models import UTXO
from slugcore.network import NetworkType
from slugcore.psbt import decode_signed_transaction
from slugcore.tx import Transaction


@dataclass
class ValidatedParent:
    tx: Transaction
    txid: str
    asset_utxo: UTXO


def decode_submission(encoded: str) -> Transaction:
    """
    Raises:
        MalformedInput: If the payload is not a signed transaction
    """
    try:
        return decode_signed_transaction(encoded)
    except ValueError as e:
        raise MalformedInput(f"Invalid PSBT: {e}") from e


class PackageValidator:
    def __init__(
        self,
        indexer: AssetIndexer,
        network: NetworkType = NetworkType.MAINNET,
        rune: str = DEFAULT_RUNE_NAME,
    ):
        self.indexer = indexer
        self.network = NetworkType(network)
        self.rune = rune

    async def resolve_asset_utxo(self, txid: str, vout: int) -> UTXO:
        """
        Look up the indexer's record of an outpoint.

        ord indexes rune balances per address, so the previous output's script
        is fetched first and turned into the address to query.

        Raises:
            AssetNotFound: If the outpoint cannot be resolved
            RpcFailure: If the indexer cannot be reached
        """
        outpoint = f"{txid}:{vout}"

        prevout = await self.indexer.get_transaction_output(txid, vout)
        if prevout is None:
            raise AssetNotFound(f"Previous output {outpoint} not found")

        try:
            address = scriptpubkey_to_address(prevout.scriptpubkey, self.network)
        except ValueError as e:
            raise AssetNotFound(f"Cannot derive an address for {outpoint}: {e}") from e

        outputs = await self.indexer.get_address_outputs(address)
        utxo = next((u for u in outputs if u.outpoint == outpoint), None)
        if utxo is None:
            raise AssetNotFound(f"UTXO not found for outpoint: {outpoint}")
        return utxo

    async def validate_parent(self, encoded: str) -> ValidatedParent:
        """
        Decide whether a submitted parent is eligible for sponsoring.

        Raises:
            MalformedInput: Undecodable or unfinalized submission
            MissingAnchor: Output 0 is not a 0-value P2A output
            AssetNotFound: Last input does not carry the designated rune
            RpcFailure: If the indexer cannot be reached
        """
        tx = decode_submission(encoded)
        logger.info(
            f"Validating parent {tx.txid}: {len(tx.inputs)} inputs, {len(tx.outputs)} outputs"
        )

        check_anchor(tx)
        logger.debug("P2A anchor output present")

        last_input = asset_input(tx)
        utxo = await self.resolve_asset_utxo(last_input.txid, last_input.vout)
        if not utxo.carries_rune(self.rune):
            raise AssetNotFound(f"Last input does not contain {self.rune} rune")

        logger.info(
            f"Parent {tx.txid} carries {utxo.rune_amount(self.rune)} {self.rune} "
            f"in input {last_input.outpoint}"
        )
        return ValidatedParent(tx=tx, txid=tx.txid, asset_utxo=utxo)

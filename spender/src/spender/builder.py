"""
Parent transaction builder.

Builds the zero-fee, version 3 parent transaction that carries a rune to the
destination and leaves a pay-to-anchor output for a searcher to sponsor:

- Inputs: payment UTXOs (largest first) + the rune UTXO as the LAST input
- Outputs: [0] anchor (0 sats) / [1] payment / [2] change (only if > 0)

The parent pays no fee. Everything the payment and rune inputs carry beyond
the payment amount returns to the payment address as change.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from slugcore.address import address_to_scriptpubkey
from slugcore.backends.base import AssetIndexer
from slugcore.constants import (
    DEFAULT_RUNE_NAME,
    PACKAGE_TX_VERSION,
    SEQUENCE_RBF_NO_LOCKTIME,
    TRUC_MAX_VSIZE,
)
from slugcore.contract import ParentTransaction, anchor_output
from slugcore.errors import InsufficientFunds, MalformedInput, NoAssetUtxo
from slugcore.models import UTXO
from slugcore.network import NetworkType
from slugcore.psbt import Psbt
from slugcore.script import classify_script, dust_threshold, estimate_signed_vsize
from slugcore.tx import Transaction, TxInput, TxOutput


@dataclass
class ParentBuildResult:
    """Unsigned parent plus everything needed to review it before signing."""

    tx: Transaction
    psbt: Psbt
    payment_utxos: list[UTXO]
    asset_utxo: UTXO
    fee: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def txid(self) -> str:
        return self.tx.txid

    @property
    def psbt_base64(self) -> str:
        return self.psbt.to_base64()


def select_payment_utxos(utxos: list[UTXO], amount: int) -> list[UTXO]:
    """
    Greedy largest-first selection until the target amount is covered.

    Args:
        utxos: Candidate UTXOs of the payment address
        amount: Target amount in sats

    Returns:
        Selected UTXOs in selection order

    Raises:
        InsufficientFunds: If all unspent candidates together are below the amount
    """
    if amount <= 0:
        raise ValueError(f"Payment amount must be positive, got {amount}")

    # sorted() is stable, equal values keep the indexer's order
    candidates = sorted((u for u in utxos if not u.spent), key=lambda u: u.value, reverse=True)

    selected: list[UTXO] = []
    total = 0
    for utxo in candidates:
        selected.append(utxo)
        total += utxo.value
        if total >= amount:
            return selected

    raise InsufficientFunds(available=total, required=amount)


def _find_asset_utxo(utxos: list[UTXO], rune: str) -> UTXO | None:
    return next((u for u in utxos if not u.spent and u.carries_rune(rune)), None)


def select_asset_utxo(utxos: list[UTXO], rune: str, address: str = "") -> UTXO:
    """
    First unspent UTXO holding a non-zero balance of ``rune``.

    Its whole rune balance moves with the parent; there is no rune change.

    Raises:
        NoAssetUtxo: If no unspent candidate carries the rune
    """
    utxo = _find_asset_utxo(utxos, rune)
    if utxo is None:
        raise NoAssetUtxo(rune, address)
    return utxo


def build_parent_transaction(
    payment_utxos: list[UTXO],
    asset_utxo: UTXO,
    destination_script: bytes,
    change_script: bytes,
    amount: int,
) -> Transaction:
    """
    Assemble the unsigned parent. Pure function of its arguments.

    Raises:
        MissingAnchor, AssetNotFound: If the result breaks the parent layout
    """
    inputs = [
        TxInput(txid=u.txid, vout=u.vout, sequence=SEQUENCE_RBF_NO_LOCKTIME)
        for u in [*payment_utxos, asset_utxo]
    ]

    outputs = [anchor_output(), TxOutput(value=amount, scriptpubkey=destination_script)]

    # The rune UTXO's sats go to change too, so change rarely ends up as dust
    change = sum(u.value for u in payment_utxos) + asset_utxo.value - amount
    if change > 0:
        outputs.append(TxOutput(value=change, scriptpubkey=change_script))

    tx = Transaction(version=PACKAGE_TX_VERSION, inputs=inputs, outputs=outputs, locktime=0)
    ParentTransaction(tx)
    return tx


def relay_warnings(
    tx: Transaction,
    prevout_scripts: list[bytes],
    payment_utxos: list[UTXO],
) -> list[str]:
    """
    Reasons the node may refuse to relay the parent, found before signing.

    The transaction is never modified; callers decide whether to go ahead.
    """
    warnings = []

    labels = {1: "payment", 2: "change"}
    for index, output in enumerate(tx.outputs[1:], start=1):
        threshold = dust_threshold(output.scriptpubkey)
        if output.value < threshold:
            script_type = classify_script(output.scriptpubkey).value
            warnings.append(
                f"Output {index} ({labels.get(index, 'extra')}) of {output.value} sats is below "
                f"the {script_type} dust threshold of {threshold} sats"
            )

    vsize = estimate_signed_vsize(tx, prevout_scripts)
    if vsize > TRUC_MAX_VSIZE:
        warnings.append(
            f"Estimated signed size {vsize} vB exceeds the TRUC limit of {TRUC_MAX_VSIZE} vB"
        )

    for utxo in payment_utxos:
        if utxo.runes:
            names = ", ".join(sorted(utxo.runes))
            warnings.append(
                f"Payment input {utxo.outpoint} carries runes ({names}) that would be "
                f"transferred to the anchor output"
            )

    return warnings


def _resolve_script(address: str, network: NetworkType, role: str) -> bytes:
    try:
        return address_to_scriptpubkey(address, network)
    except ValueError as e:
        raise MalformedInput(f"Invalid {role} address {address}: {e}") from e


def _prevout(utxo: UTXO, address_script: bytes) -> TxOutput:
    script = utxo.script if utxo.scriptpubkey else address_script
    return TxOutput(value=utxo.value, scriptpubkey=script)


class ParentBuilder:
    """
    Fetches UTXO snapshots from the indexer and builds parent transactions.
    """

    def __init__(
        self,
        indexer: AssetIndexer,
        network: NetworkType = NetworkType.MAINNET,
        rune: str = DEFAULT_RUNE_NAME,
    ):
        self.indexer = indexer
        self.network = NetworkType(network)
        self.rune = rune

    async def build_parent(
        self,
        payment_address: str,
        rune_address: str,
        destination_address: str,
        amount: int,
    ) -> ParentBuildResult:
        """
        Build an unsigned parent sending ``amount`` sats and the rune UTXO.

        Raises:
            MalformedInput: If an address is not valid for the configured network
            InsufficientFunds: If the payment address cannot cover the amount
            NoAssetUtxo: If the rune address holds no UTXO with the rune
            RpcFailure: If the indexer cannot be reached
        """
        payment_script = _resolve_script(payment_address, self.network, "payment")
        rune_script = _resolve_script(rune_address, self.network, "rune")
        destination_script = _resolve_script(destination_address, self.network, "destination")

        logger.info(f"Building parent: {amount} sats to {destination_address}")
        logger.info(f"Fetching UTXOs for payment address {payment_address}")
        payment_candidates = await self.indexer.get_address_outputs(payment_address)

        logger.info(f"Fetching UTXOs for rune address {rune_address}")
        if rune_address == payment_address:
            asset_candidates = payment_candidates
        else:
            asset_candidates = await self.indexer.get_address_outputs(rune_address)

        # Never spend the rune UTXO twice when both addresses are the same
        asset_candidate = _find_asset_utxo(asset_candidates, self.rune)
        excluded = {asset_candidate.outpoint} if asset_candidate else set()

        payment_utxos = select_payment_utxos(
            [u for u in payment_candidates if u.outpoint not in excluded], amount
        )
        selected_total = sum(u.value for u in payment_utxos)
        logger.info(f"Selected {len(payment_utxos)} payment UTXOs ({selected_total} sats)")
        for utxo in payment_utxos:
            logger.debug(f"  - {utxo.outpoint} ({utxo.value} sats)")

        asset_utxo = select_asset_utxo(asset_candidates, self.rune, rune_address)
        logger.info(
            f"Selected rune UTXO {asset_utxo.outpoint} "
            f"({asset_utxo.value} sats, {asset_utxo.rune_amount(self.rune)} {self.rune})"
        )

        tx = build_parent_transaction(
            payment_utxos, asset_utxo, destination_script, payment_script, amount
        )

        prevouts = [_prevout(u, payment_script) for u in payment_utxos]
        prevouts.append(_prevout(asset_utxo, rune_script))
        psbt = Psbt.from_unsigned_tx(tx, prevouts)

        warnings = relay_warnings(tx, [p.scriptpubkey for p in prevouts], payment_utxos)
        for warning in warnings:
            logger.warning(warning)

        logger.info(
            f"Parent {tx.txid}: {len(tx.inputs)} inputs, {len(tx.outputs)} outputs, fee 0"
        )
        logger.debug(f"Unsigned parent hex: {tx.to_hex()}")

        return ParentBuildResult(
            tx=tx,
            psbt=psbt,
            payment_utxos=payment_utxos,
            asset_utxo=asset_utxo,
            warnings=warnings,
        )

"""
CPFP child construction for sponsored parents.

The child spends:
- input 0: the parent's anchor output (parent_txid:0, 0 sats, empty witness)
- input 1: one UTXO of the searcher wallet

and pays everything except the package fee back to the searcher UTXO's own
script. The fee covers parent and child together:

    total_fee = ceil((parent_vsize + child_vsize) * fee_rate)

because the parent pays nothing and only relays as part of the package.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any

from loguru import logger
from slugcore.constants import (
    ANCHOR_SCRIPT,
    ANCHOR_VALUE,
    ANCHOR_VOUT,
    PACKAGE_TX_VERSION,
    SEQUENCE_RBF_NO_LOCKTIME,
    TRUC_CHILD_MAX_VSIZE,
)
from slugcore.contract import check_anchor
from slugcore.errors import InsufficientSearcherFunds, NoSearcherFunds
from slugcore.models import UTXO
from slugcore.script import dust_threshold, estimate_signed_vsize
from slugcore.tx import Transaction, TxInput, TxOutput

# Picks the UTXO that funds a child from the non-reserved wallet UTXOs
SelectionStrategy = Callable[[list[UTXO]], UTXO]

# Fetches a fresh wallet snapshot
CandidateSource = Callable[[], Awaitable[list[UTXO]]]


def select_first_available(candidates: list[UTXO]) -> UTXO:
    """
    Use the first UTXO the wallet lists.

    Raises:
        NoSearcherFunds: If there are no candidates
    """
    if not candidates:
        raise NoSearcherFunds()
    return candidates[0]


class UtxoReservations:
    """
    Outpoints claimed by submissions that have not finished yet, and outpoints
    spent by submitted children that the wallet may still list.

    The node wallet has no notion of reserving a UTXO between signing and
    submitpackage, so concurrent submissions take the wallet snapshot and
    select under one lock, skipping whatever another submission holds.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._reserved: set[str] = set()
        self._spent: set[str] = set()

    def __len__(self) -> int:
        return len(self._reserved)

    def is_reserved(self, outpoint: str) -> bool:
        return outpoint in self._reserved

    def is_spent(self, outpoint: str) -> bool:
        return outpoint in self._spent

    async def reserve(
        self,
        candidates: list[UTXO] | CandidateSource,
        strategy: SelectionStrategy = select_first_available,
    ) -> UTXO:
        """
        Select and reserve one UTXO.

        ``candidates`` is either a wallet snapshot or a coroutine function
        returning one; a coroutine function is awaited while the lock is held.

        Raises:
            NoSearcherFunds: If the wallet is empty or every UTXO is reserved
        """
        async with self._lock:
            utxos = await candidates() if callable(candidates) else candidates
            if not utxos:
                raise NoSearcherFunds()

            # Forget spends once the wallet no longer lists the outpoint
            self._spent &= {u.outpoint for u in utxos}

            available = [
                u
                for u in utxos
                if u.outpoint not in self._reserved and u.outpoint not in self._spent
            ]
            if not available:
                raise NoSearcherFunds(
                    f"All {len(utxos)} searcher UTXOs are in use by pending submissions"
                )
            utxo = strategy(available)
            self._reserved.add(utxo.outpoint)

        logger.debug(f"Reserved searcher UTXO {utxo.outpoint}")
        return utxo

    async def release(self, utxo: UTXO, spent: bool = False) -> None:
        async with self._lock:
            self._reserved.discard(utxo.outpoint)
            if spent:
                self._spent.add(utxo.outpoint)
        logger.debug(f"Released searcher UTXO {utxo.outpoint} (spent: {spent})")

    @contextlib.asynccontextmanager
    async def hold(
        self,
        candidates: list[UTXO] | CandidateSource,
        strategy: SelectionStrategy = select_first_available,
    ) -> AsyncIterator[UTXO]:
        """
        Reserve a UTXO for the duration of the block.

        Leaving the block normally marks the UTXO spent, so it is not selected
        again while the wallet still lists it. On an exception it is released.
        """
        utxo = await self.reserve(candidates, strategy)
        try:
            yield utxo
        except BaseException:
            await self.release(utxo)
            raise
        await self.release(utxo, spent=True)


@dataclass
class CpfpChild:
    tx: Transaction
    searcher_utxo: UTXO
    parent_txid: str
    parent_vsize: int
    child_vsize: int
    fee: int
    fee_rate: Decimal

    @property
    def anchor_prevout(self) -> dict[str, Any]:
        """Descriptor of the anchor output for signrawtransactionwithwallet."""
        return {
            "txid": self.parent_txid,
            "vout": ANCHOR_VOUT,
            "scriptPubKey": ANCHOR_SCRIPT.hex(),
            "amount": ANCHOR_VALUE,
        }

    @property
    def output_value(self) -> int:
        return self.tx.outputs[0].value


def calculate_package_fee(
    parent_vsize: int, child_vsize: int, fee_rate: Decimal | float | str
) -> int:
    """Fee in sats for parent+child at ``fee_rate`` sat/vB, rounded up."""
    rate = Decimal(str(fee_rate))
    if rate < 0:
        raise ValueError(f"Fee rate must not be negative, got {fee_rate}")
    total = Decimal(parent_vsize + child_vsize) * rate
    return int(total.to_integral_value(rounding=ROUND_CEILING))


def child_output_value(searcher_value: int, total_fee: int, script: bytes) -> int:
    """
    Value left for the child's single output.

    Raises:
        InsufficientSearcherFunds: If the remainder is not positive or is dust
    """
    value = searcher_value + ANCHOR_VALUE - total_fee
    threshold = dust_threshold(script)
    if value <= 0 or value < threshold:
        raise InsufficientSearcherFunds(
            available=searcher_value, fee=total_fee, dust_threshold=threshold
        )
    return value


def estimate_child_vsize(child: Transaction, searcher_script: bytes) -> int:
    """Child vsize with an empty anchor witness and a placeholder wallet signature."""
    return estimate_signed_vsize(child, [ANCHOR_SCRIPT, searcher_script])


def build_cpfp_child(
    parent: Transaction,
    searcher_utxo: UTXO,
    fee_rate: Decimal | float | str,
) -> CpfpChild:
    """
    Build the unsigned child that sponsors ``parent``.

    Args:
        parent: Signed parent transaction (its vsize is measured as-is)
        searcher_utxo: Wallet UTXO funding the package fee
        fee_rate: Package fee rate in sat/vB

    Raises:
        MissingAnchor: If the parent has no anchor output
        InsufficientSearcherFunds: If the searcher UTXO cannot pay the fee
    """
    check_anchor(parent)
    if not searcher_utxo.scriptpubkey:
        raise ValueError(f"Searcher UTXO {searcher_utxo.outpoint} has no scriptPubKey")

    script = searcher_utxo.script
    parent_txid = parent.txid

    inputs = [
        TxInput(txid=parent_txid, vout=ANCHOR_VOUT, sequence=SEQUENCE_RBF_NO_LOCKTIME),
        TxInput(
            txid=searcher_utxo.txid, vout=searcher_utxo.vout, sequence=SEQUENCE_RBF_NO_LOCKTIME
        ),
    ]
    # Provisional output, only used to size the child
    child = Transaction(
        version=PACKAGE_TX_VERSION,
        inputs=inputs,
        outputs=[TxOutput(value=searcher_utxo.value, scriptpubkey=script)],
        locktime=0,
    )

    parent_vsize = parent.vsize
    child_vsize = estimate_child_vsize(child, script)
    logger.info(f"Parent transaction vsize: {parent_vsize} vbytes")
    logger.info(f"Child transaction vsize: {child_vsize} vbytes")
    if child_vsize > TRUC_CHILD_MAX_VSIZE:
        logger.warning(
            f"Child vsize {child_vsize} vB exceeds the TRUC child limit of "
            f"{TRUC_CHILD_MAX_VSIZE} vB"
        )

    rate = Decimal(str(fee_rate))
    total_fee = calculate_package_fee(parent_vsize, child_vsize, rate)
    logger.info(
        f"Total vsize: {parent_vsize + child_vsize} vbytes, Fee rate: {rate} sat/vB, "
        f"Total fee: {total_fee} sats"
    )

    child.outputs[0].value = child_output_value(searcher_utxo.value, total_fee, script)

    return CpfpChild(
        tx=child,
        searcher_utxo=searcher_utxo,
        parent_txid=parent_txid,
        parent_vsize=parent_vsize,
        child_vsize=child_vsize,
        fee=total_fee,
        fee_rate=rate,
    )

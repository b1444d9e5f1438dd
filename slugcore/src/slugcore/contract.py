"""
Structural contract shared by parent builder and package validator.

A parent transaction is eligible for fee sponsoring only when:
- output 0 is the pay-to-anchor output (value 0, script 51024e73)
- the last input spends the output carrying the designated rune
- the version is 3 (TRUC), so the node accepts it at zero fee inside a package

The builder checks these when it assembles a parent, the validator checks them
again when a signed parent is submitted.
"""

from __future__ import annotations

from dataclasses import dataclass

from slugcore.constants import ANCHOR_SCRIPT, ANCHOR_VALUE, ANCHOR_VOUT, PACKAGE_TX_VERSION
from slugcore.errors import AssetNotFound, MalformedInput, MissingAnchor
from slugcore.tx import Transaction, TxInput, TxOutput


def anchor_output() -> TxOutput:
    return TxOutput(value=ANCHOR_VALUE, scriptpubkey=ANCHOR_SCRIPT)


def is_anchor_output(output: TxOutput) -> bool:
    return output.value == ANCHOR_VALUE and output.scriptpubkey == ANCHOR_SCRIPT


def check_anchor(tx: Transaction) -> TxOutput:
    """
    Return output 0 if it is the anchor.

    Raises:
        MissingAnchor: If there are no outputs or output 0 has the wrong value or script
    """
    if not tx.outputs:
        raise MissingAnchor("Transaction has no outputs")

    first = tx.outputs[ANCHOR_VOUT]
    if first.scriptpubkey != ANCHOR_SCRIPT:
        raise MissingAnchor(
            f"First output is not a P2A output (script {first.scriptpubkey.hex()})"
        )
    if first.value != ANCHOR_VALUE:
        raise MissingAnchor(f"P2A output value is {first.value} sats, expected 0")
    return first


def asset_input(tx: Transaction) -> TxInput:
    """
    Return the input expected to carry the rune (always the last one).

    Raises:
        AssetNotFound: If the transaction has no inputs
    """
    if not tx.inputs:
        raise AssetNotFound("Transaction has no inputs")
    return tx.inputs[-1]


def check_version(tx: Transaction) -> None:
    if tx.version != PACKAGE_TX_VERSION:
        raise MalformedInput(
            f"Transaction version is {tx.version}, package relay requires {PACKAGE_TX_VERSION}"
        )


@dataclass(frozen=True)
class ParentTransaction:
    """
    A transaction known to follow the parent layout.

    Construction runs verify_structure(), so holding an instance is proof the
    anchor and rune-input positions were checked.
    """

    tx: Transaction

    def __post_init__(self) -> None:
        self.verify_structure()

    def verify_structure(self) -> None:
        check_anchor(self.tx)
        asset_input(self.tx)
        check_version(self.tx)

    @property
    def anchor(self) -> TxOutput:
        return self.tx.outputs[ANCHOR_VOUT]

    @property
    def asset_input(self) -> TxInput:
        return self.tx.inputs[-1]

    @property
    def txid(self) -> str:
        return self.tx.txid

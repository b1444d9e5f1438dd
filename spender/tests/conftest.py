"""
Test fixtures and configuration.
"""

from collections.abc import Callable
from types import SimpleNamespace

import pytest

from slugcore.address import scriptpubkey_to_address
from slugcore.backends.base import AssetIndexer
from slugcore.models import UTXO, RuneBalance
from slugcore.tx import TxOutput

RUNE = "TESTSLUGLINERUNE"

PAYMENT_SCRIPT = bytes.fromhex("0014" + "11" * 20)
RUNE_SCRIPT = bytes.fromhex("5120" + "22" * 32)
DESTINATION_SCRIPT = bytes.fromhex("0014" + "33" * 20)

PAYMENT_ADDRESS = scriptpubkey_to_address(PAYMENT_SCRIPT, "regtest")
RUNE_ADDRESS = scriptpubkey_to_address(RUNE_SCRIPT, "regtest")
DESTINATION_ADDRESS = scriptpubkey_to_address(DESTINATION_SCRIPT, "regtest")


class FakeIndexer(AssetIndexer):
    """In-memory ord server."""

    def __init__(self, outputs: dict[str, list[UTXO]]):
        self.outputs = outputs
        self.queried: list[str] = []

    async def get_address_outputs(self, address: str) -> list[UTXO]:
        self.queried.append(address)
        return list(self.outputs.get(address, []))

    async def get_transaction_output(self, txid: str, vout: int) -> TxOutput | None:
        for utxos in self.outputs.values():
            for utxo in utxos:
                if utxo.txid == txid and utxo.vout == vout:
                    return utxo.to_prevout()
        return None


@pytest.fixture
def make_utxo() -> Callable[..., UTXO]:
    counter = iter(range(1, 1000))

    def factory(
        value: int,
        script: bytes = PAYMENT_SCRIPT,
        rune_amount: int = 0,
        spent: bool = False,
        runes: dict[str, int] | None = None,
    ) -> UTXO:
        balances = dict(runes or {})
        if rune_amount:
            balances[RUNE] = rune_amount
        return UTXO(
            txid=f"{next(counter):064x}",
            vout=0,
            value=value,
            scriptpubkey=script.hex(),
            spent=spent,
            runes={name: RuneBalance(amount=amount) for name, amount in balances.items()},
        )

    return factory


@pytest.fixture
def rune_utxo(make_utxo) -> UTXO:
    return make_utxo(1_000, script=RUNE_SCRIPT, rune_amount=500)


@pytest.fixture
def make_indexer() -> Callable[..., FakeIndexer]:
    def factory(payment: list[UTXO], runes: list[UTXO]) -> FakeIndexer:
        return FakeIndexer({PAYMENT_ADDRESS: payment, RUNE_ADDRESS: runes})

    return factory


@pytest.fixture
def wallet() -> SimpleNamespace:
    """Addresses and scripts of the spender's regtest wallet."""
    return SimpleNamespace(
        rune=RUNE,
        payment_address=PAYMENT_ADDRESS,
        payment_script=PAYMENT_SCRIPT,
        rune_address=RUNE_ADDRESS,
        rune_script=RUNE_SCRIPT,
        destination_address=DESTINATION_ADDRESS,
        destination_script=DESTINATION_SCRIPT,
    )


@pytest.fixture
def indexer_class() -> type[FakeIndexer]:
    return FakeIndexer

"""
Test fixtures and configuration.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from slugcore.address import scriptpubkey_to_address
from slugcore.backends.base import AssetIndexer, WalletNode
from slugcore.contract import anchor_output
from slugcore.models import UTXO, RuneBalance
from slugcore.psbt import Psbt
from slugcore.tx import Transaction, TxInput, TxOutput

RUNE = "TESTSLUGLINERUNE"

PAYMENT_SCRIPT = bytes.fromhex("0014" + "11" * 20)
RUNE_SCRIPT = bytes.fromhex("5120" + "22" * 32)
DESTINATION_SCRIPT = bytes.fromhex("0014" + "33" * 20)
SEARCHER_SCRIPT = bytes.fromhex("0014" + "44" * 20)

RUNE_ADDRESS = scriptpubkey_to_address(RUNE_SCRIPT, "regtest")

PAYMENT_PREVOUT = TxOutput(value=80_000, scriptpubkey=PAYMENT_SCRIPT)
RUNE_PREVOUT = TxOutput(value=1_000, scriptpubkey=RUNE_SCRIPT)


class FakeIndexer(AssetIndexer):
    """In-memory ord server."""

    def __init__(self, outputs: dict[str, list[UTXO]]):
        self.outputs = outputs
        self.calls = 0

    async def get_address_outputs(self, address: str) -> list[UTXO]:
        self.calls += 1
        return list(self.outputs.get(address, []))

    async def get_transaction_output(self, txid: str, vout: int) -> TxOutput | None:
        self.calls += 1
        for utxos in self.outputs.values():
            for utxo in utxos:
                if utxo.txid == txid and utxo.vout == vout:
                    return utxo.to_prevout()
        return None


def unsigned_parent(outputs: list[TxOutput] | None = None, version: int = 3) -> Transaction:
    if outputs is None:
        outputs = [
            anchor_output(),
            TxOutput(value=60_000, scriptpubkey=DESTINATION_SCRIPT),
            TxOutput(value=21_000, scriptpubkey=PAYMENT_SCRIPT),
        ]
    return Transaction(
        version=version,
        inputs=[
            TxInput(txid="cc" * 32, vout=0, sequence=0xFFFFFFFD),
            TxInput(txid="dd" * 32, vout=1, sequence=0xFFFFFFFD),
        ],
        outputs=outputs,
        locktime=0,
    )


def finalized_psbt(tx: Transaction) -> Psbt:
    """PSBT of ``tx`` with dummy P2WPKH and key-path P2TR final witnesses."""
    psbt = Psbt.from_unsigned_tx(tx, [PAYMENT_PREVOUT, RUNE_PREVOUT])
    psbt.inputs[0].final_script_witness = [bytes(72), bytes([2]) * 33]
    psbt.inputs[1].final_script_witness = [bytes(64)]
    return psbt


@pytest.fixture
def rune_utxo() -> UTXO:
    return UTXO(
        txid="dd" * 32,
        vout=1,
        value=RUNE_PREVOUT.value,
        scriptpubkey=RUNE_SCRIPT.hex(),
        address=RUNE_ADDRESS,
        runes={RUNE: RuneBalance(amount=500)},
    )


@pytest.fixture
def indexer(rune_utxo) -> FakeIndexer:
    return FakeIndexer({RUNE_ADDRESS: [rune_utxo]})


@pytest.fixture
def make_parent() -> Callable[..., Psbt]:
    """Finalized parent PSBT, optionally with custom outputs or version."""

    def factory(outputs: list[TxOutput] | None = None, version: int = 3) -> Psbt:
        return finalized_psbt(unsigned_parent(outputs, version))

    return factory


@pytest.fixture
def parent_psbt(make_parent) -> Psbt:
    return make_parent()


@pytest.fixture
def parent_tx(parent_psbt) -> Transaction:
    return parent_psbt.extract_tx()


@pytest.fixture
def make_searcher_utxo() -> Callable[..., UTXO]:
    counter = iter(range(1, 1000))

    def factory(value: int = 100_000, script: bytes = SEARCHER_SCRIPT) -> UTXO:
        return UTXO(
            txid=f"{0xE000 + next(counter):064x}",
            vout=0,
            value=value,
            scriptpubkey=script.hex(),
            confirmations=6,
        )

    return factory


@pytest.fixture
def wallet(make_searcher_utxo) -> AsyncMock:
    """Node wallet holding one 100,000 sat UTXO that signs and accepts everything."""
    node = AsyncMock(spec=WalletNode)
    node.list_unspent.return_value = [make_searcher_utxo()]

    async def sign(tx_hex: str, prevtxs=None) -> dict:
        tx = Transaction.from_hex(tx_hex)
        tx.inputs[1].witness = [bytes(72), bytes([2]) * 33]
        return {"hex": tx.to_hex(), "complete": True}

    node.sign_raw_transaction_with_wallet.side_effect = sign
    node.submit_package.return_value = {"package_msg": "success", "tx-results": {}}
    return node

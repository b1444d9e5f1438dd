"""
Test fixtures and configuration.
"""

import pytest

from slugcore.tx import Transaction, TxInput, TxOutput

GENESIS_COINBASE_HEX = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff4d04ff"
    "ff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72206f6e2062"
    "72696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff0100f2052a0100"
    "0000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f61deb649f6bc3f4cef"
    "38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_COINBASE_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"


@pytest.fixture
def genesis_coinbase_hex() -> str:
    return GENESIS_COINBASE_HEX


@pytest.fixture
def genesis_coinbase_txid() -> str:
    return GENESIS_COINBASE_TXID


@pytest.fixture
def p2wpkh_script() -> bytes:
    return bytes.fromhex("0014751e76e8199196d454941c45d1b3a323f1433bd6")


@pytest.fixture
def p2tr_script() -> bytes:
    return bytes.fromhex("512079be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")


@pytest.fixture
def segwit_tx(p2wpkh_script: bytes) -> Transaction:
    """Two-input version 3 transaction with one signed P2WPKH input."""
    return Transaction(
        version=3,
        inputs=[
            TxInput(
                txid="aa" * 32,
                vout=1,
                sequence=0xFFFFFFFD,
                witness=[bytes(72), bytes([2]) * 33],
            ),
            TxInput(txid="bb" * 32, vout=0, sequence=0xFFFFFFFD),
        ],
        outputs=[
            TxOutput(value=0, scriptpubkey=bytes.fromhex("51024e73")),
            TxOutput(value=12_345, scriptpubkey=p2wpkh_script),
        ],
    )

"""
Tests for script classification, dust thresholds and size estimation.
"""

import pytest

from slugcore.script import (
    ScriptType,
    classify_script,
    dust_threshold,
    estimate_signed_vsize,
    placeholder_spend,
)
from slugcore.tx import Transaction, TxInput, TxOutput

P2PKH = bytes.fromhex("76a914" + "11" * 20 + "88ac")
P2SH = bytes.fromhex("a914" + "22" * 20 + "87")
P2WSH = bytes.fromhex("0020" + "33" * 32)
ANCHOR = bytes.fromhex("51024e73")
NULL_DATA = bytes.fromhex("6a0401020304")


def test_classify_script(p2wpkh_script, p2tr_script):
    assert classify_script(p2wpkh_script) == ScriptType.P2WPKH
    assert classify_script(p2tr_script) == ScriptType.P2TR
    assert classify_script(P2PKH) == ScriptType.P2PKH
    assert classify_script(P2SH) == ScriptType.P2SH
    assert classify_script(P2WSH) == ScriptType.P2WSH
    assert classify_script(ANCHOR) == ScriptType.ANCHOR
    assert classify_script(NULL_DATA) == ScriptType.NULL_DATA
    assert classify_script(bytes.fromhex("5203aabbcc")) == ScriptType.WITNESS_UNKNOWN
    assert classify_script(b"\xac") == ScriptType.NONSTANDARD


def test_dust_thresholds_match_bitcoin_core(p2wpkh_script, p2tr_script):
    assert dust_threshold(p2wpkh_script) == 294
    assert dust_threshold(p2tr_script) == 330
    assert dust_threshold(P2WSH) == 330
    assert dust_threshold(P2SH) == 540
    assert dust_threshold(P2PKH) == 546


def test_null_data_is_never_dust():
    assert dust_threshold(NULL_DATA) == 0


def test_dust_threshold_scales_with_relay_fee(p2wpkh_script):
    assert dust_threshold(p2wpkh_script, dust_relay_fee=1000) == 98


@pytest.mark.parametrize(
    "script,script_sig_len,witness_lens",
    [
        (ANCHOR, 0, []),
        (bytes.fromhex("0014" + "00" * 20), 0, [72, 33]),
        (bytes.fromhex("5120" + "00" * 32), 0, [64]),
        (P2PKH, 107, []),
        (P2SH, 23, [72, 33]),
        (P2WSH, 0, [72, 33]),
    ],
)
def test_placeholder_spend_sizes(script, script_sig_len, witness_lens):
    script_sig, witness = placeholder_spend(script)

    assert len(script_sig) == script_sig_len
    assert [len(item) for item in witness] == witness_lens


def test_estimate_child_vsize_with_p2wpkh_funding(p2wpkh_script):
    child = Transaction(
        version=3,
        inputs=[
            TxInput(txid="aa" * 32, vout=0, sequence=0xFFFFFFFD),
            TxInput(txid="bb" * 32, vout=3, sequence=0xFFFFFFFD),
        ],
        outputs=[TxOutput(value=100_000, scriptpubkey=p2wpkh_script)],
    )

    # 123 base bytes, 234 total bytes -> weight 603
    assert estimate_signed_vsize(child, [ANCHOR, p2wpkh_script]) == 151
    # The transaction itself is left unsigned
    assert not child.has_witness


def test_estimate_keeps_existing_witness(segwit_tx, p2wpkh_script, p2tr_script):
    estimated = estimate_signed_vsize(segwit_tx, [p2wpkh_script, p2tr_script])

    signed = Transaction.parse(segwit_tx.serialize())
    signed.inputs[1].witness = [bytes(64)]
    assert estimated == signed.vsize


def test_estimate_requires_script_per_input(segwit_tx, p2wpkh_script):
    with pytest.raises(ValueError):
        estimate_signed_vsize(segwit_tx, [p2wpkh_script])

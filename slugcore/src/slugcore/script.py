"""
scriptPubKey classification and relay policy helpers.
"""

from __future__ import annotations

from enum import Enum

from slugcore.constants import (
    ANCHOR_SCRIPT,
    COMPRESSED_PUBKEY_SIZE,
    DUST_RELAY_FEE,
    P2TR_SIGNATURE_SIZE,
    P2WPKH_SIGNATURE_SIZE,
)
from slugcore.tx import Transaction, TxInput, varint


class ScriptType(str, Enum):
    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "p2wpkh"
    P2WSH = "p2wsh"
    P2TR = "p2tr"
    ANCHOR = "anchor"
    WITNESS_UNKNOWN = "witness_unknown"
    NULL_DATA = "nulldata"
    NONSTANDARD = "nonstandard"


def parse_witness_program(script: bytes) -> tuple[int, bytes] | None:
    """
    Return (version, program) if ``script`` is a witness program, else None.

    A witness program is a 1-byte push opcode (OP_0 or OP_1..OP_16) followed
    by a single direct push of 2 to 40 bytes.
    """
    if len(script) < 4 or len(script) > 42:
        return None
    opcode = script[0]
    if opcode != 0x00 and not (0x51 <= opcode <= 0x60):
        return None
    if script[1] + 2 != len(script):
        return None
    version = 0 if opcode == 0x00 else opcode - 0x50
    return version, script[2:]


def classify_script(script: bytes) -> ScriptType:
    if script == ANCHOR_SCRIPT:
        return ScriptType.ANCHOR

    program = parse_witness_program(script)
    if program is not None:
        version, witprog = program
        if version == 0 and len(witprog) == 20:
            return ScriptType.P2WPKH
        if version == 0 and len(witprog) == 32:
            return ScriptType.P2WSH
        if version == 1 and len(witprog) == 32:
            return ScriptType.P2TR
        return ScriptType.WITNESS_UNKNOWN

    if (
        len(script) == 25
        and script[:3] == bytes([0x76, 0xA9, 0x14])
        and script[23:] == bytes([0x88, 0xAC])
    ):
        return ScriptType.P2PKH
    if len(script) == 23 and script[:2] == bytes([0xA9, 0x14]) and script[22] == 0x87:
        return ScriptType.P2SH
    if script[:1] == bytes([0x6A]):
        return ScriptType.NULL_DATA
    return ScriptType.NONSTANDARD


def dust_threshold(script: bytes, dust_relay_fee: int = DUST_RELAY_FEE) -> int:
    """
    Smallest output value Bitcoin Core relays for ``script``.

    Mirrors GetDustThreshold(): the cost of creating the output plus the cost
    of later spending it, at the dust relay feerate (sat/kvB).
    P2WPKH -> 294, P2TR -> 330, P2SH -> 540, P2PKH -> 546.
    """
    if classify_script(script) == ScriptType.NULL_DATA:
        return 0

    size = 8 + len(varint(len(script))) + len(script)
    if parse_witness_program(script) is not None:
        # outpoint + scriptSig length + witness discount on a 107-byte witness + sequence
        size += 32 + 4 + 1 + (107 // 4) + 4
    else:
        size += 32 + 4 + 1 + 107 + 4

    return size * dust_relay_fee // 1000


def placeholder_spend(script: bytes) -> tuple[bytes, list[bytes]]:
    """
    (scriptSig, witness) of the expected size for spending ``script`` with one key.

    Used to size a transaction before the wallet has signed it. P2SH is assumed
    to wrap P2WPKH; unknown script types are sized as P2WPKH.
    """
    script_type = classify_script(script)
    signature = bytes(P2WPKH_SIGNATURE_SIZE)
    pubkey = bytes(COMPRESSED_PUBKEY_SIZE)

    if script_type == ScriptType.ANCHOR:
        return b"", []
    if script_type == ScriptType.P2TR:
        return b"", [bytes(P2TR_SIGNATURE_SIZE)]
    if script_type == ScriptType.P2PKH:
        script_sig = bytes([len(signature)]) + signature + bytes([len(pubkey)]) + pubkey
        return script_sig, []
    if script_type == ScriptType.P2SH:
        # push of the 22-byte P2WPKH redeem script
        return bytes([22]) + bytes(22), [signature, pubkey]
    return b"", [signature, pubkey]


def estimate_signed_vsize(tx: Transaction, prevout_scripts: list[bytes]) -> int:
    """
    Virtual size ``tx`` will have once every input is signed.

    Inputs that already carry a scriptSig or witness are measured as they are;
    the rest get a placeholder spend for the script they consume.
    """
    if len(prevout_scripts) != len(tx.inputs):
        raise ValueError(
            f"Got {len(prevout_scripts)} previous output scripts for {len(tx.inputs)} inputs"
        )

    inputs = []
    for inp, script in zip(tx.inputs, prevout_scripts, strict=True):
        if inp.script_sig or inp.witness:
            inputs.append(inp)
            continue
        script_sig, witness = placeholder_spend(script)
        inputs.append(
            TxInput(
                txid=inp.txid,
                vout=inp.vout,
                sequence=inp.sequence,
                script_sig=script_sig,
                witness=witness,
            )
        )

    sized = Transaction(
        version=tx.version, inputs=inputs, outputs=list(tx.outputs), locktime=tx.locktime
    )
    return sized.vsize

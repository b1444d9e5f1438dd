"""
Partially Signed Bitcoin Transaction (BIP174, version 0) container.

Only the records this project reads or writes are exposed as typed
properties; every other key/value record is kept verbatim so a PSBT can pass
through a parse/serialize cycle without losing signer metadata.
"""

from __future__ import annotations

import base64
import binascii
import string
from dataclasses import dataclass, field

from slugcore.errors import DecodeError
from slugcore.tx import (
    Transaction,
    TxInput,
    TxOutput,
    read_bytes,
    read_varint,
    read_witness,
    serialize_witness,
    varint,
)

PSBT_MAGIC = b"psbt\xff"

PSBT_GLOBAL_UNSIGNED_TX = 0x00

PSBT_IN_WITNESS_UTXO = 0x01
PSBT_IN_FINAL_SCRIPTSIG = 0x07
PSBT_IN_FINAL_SCRIPTWITNESS = 0x08


def _serialize_map(records: dict[bytes, bytes]) -> bytes:
    result = b""
    for key, value in records.items():
        result += varint(len(key)) + key + varint(len(value)) + value
    return result + b"\x00"


def _read_map(data: bytes, offset: int) -> tuple[dict[bytes, bytes], int]:
    records: dict[bytes, bytes] = {}
    while True:
        key_len, offset = read_varint(data, offset)
        if key_len == 0:
            return records, offset
        key, offset = read_bytes(data, offset, key_len)
        value_len, offset = read_varint(data, offset)
        value, offset = read_bytes(data, offset, value_len)
        if key in records:
            raise DecodeError(f"Duplicate PSBT key {key.hex()}")
        records[key] = value


@dataclass
class PsbtInput:
    records: dict[bytes, bytes] = field(default_factory=dict)

    @property
    def witness_utxo(self) -> TxOutput | None:
        raw = self.records.get(bytes([PSBT_IN_WITNESS_UTXO]))
        if raw is None:
            return None
        output, offset = TxOutput.parse(raw)
        if offset != len(raw):
            raise DecodeError("Trailing bytes in PSBT witness UTXO")
        return output

    @witness_utxo.setter
    def witness_utxo(self, output: TxOutput) -> None:
        self.records[bytes([PSBT_IN_WITNESS_UTXO])] = output.serialize()

    @property
    def final_script_sig(self) -> bytes | None:
        return self.records.get(bytes([PSBT_IN_FINAL_SCRIPTSIG]))

    @property
    def final_script_witness(self) -> list[bytes] | None:
        raw = self.records.get(bytes([PSBT_IN_FINAL_SCRIPTWITNESS]))
        if raw is None:
            return None
        stack, offset = read_witness(raw, 0)
        if offset != len(raw):
            raise DecodeError("Trailing bytes in PSBT final script witness")
        return stack

    @final_script_witness.setter
    def final_script_witness(self, stack: list[bytes]) -> None:
        self.records[bytes([PSBT_IN_FINAL_SCRIPTWITNESS])] = serialize_witness(stack)

    @property
    def is_finalized(self) -> bool:
        return self.final_script_sig is not None or self.final_script_witness is not None


@dataclass
class Psbt:
    unsigned_tx: Transaction
    inputs: list[PsbtInput]
    outputs: list[dict[bytes, bytes]]
    global_records: dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def from_unsigned_tx(cls, tx: Transaction, prevouts: list[TxOutput]) -> Psbt:
        """
        Wrap an unsigned transaction, recording each input's previous output.

        The WITNESS_UTXO records let an offline signer compute signatures
        without looking the spent outputs up on chain.
        """
        if len(prevouts) != len(tx.inputs):
            raise ValueError(
                f"Got {len(prevouts)} previous outputs for {len(tx.inputs)} inputs"
            )
        if any(inp.script_sig or inp.witness for inp in tx.inputs):
            raise ValueError("PSBT requires an unsigned transaction")

        inputs = []
        for prevout in prevouts:
            psbt_input = PsbtInput()
            psbt_input.witness_utxo = prevout
            inputs.append(psbt_input)

        return cls(unsigned_tx=tx, inputs=inputs, outputs=[{} for _ in tx.outputs])

    def serialize(self) -> bytes:
        global_records = {
            bytes([PSBT_GLOBAL_UNSIGNED_TX]): self.unsigned_tx.serialize(include_witness=False)
        }
        global_records.update(self.global_records)

        result = PSBT_MAGIC + _serialize_map(global_records)
        for psbt_input in self.inputs:
            result += _serialize_map(psbt_input.records)
        for output_records in self.outputs:
            result += _serialize_map(output_records)
        return result

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode("ascii")

    @classmethod
    def parse(cls, data: bytes) -> Psbt:
        """
        Parse a serialized PSBT.

        Raises:
            DecodeError: On bad magic, missing unsigned transaction or truncated maps
        """
        if not data.startswith(PSBT_MAGIC):
            raise DecodeError("Missing PSBT magic bytes")

        global_records, offset = _read_map(data, len(PSBT_MAGIC))
        raw_tx = global_records.pop(bytes([PSBT_GLOBAL_UNSIGNED_TX]), None)
        if raw_tx is None:
            raise DecodeError("PSBT has no unsigned transaction")

        # BIP174 stores the unsigned transaction in legacy serialization
        unsigned_tx = Transaction.parse(raw_tx, allow_witness=False)
        if any(inp.script_sig or inp.witness for inp in unsigned_tx.inputs):
            raise DecodeError("PSBT unsigned transaction has scriptSig or witness data")

        inputs = []
        for _ in unsigned_tx.inputs:
            records, offset = _read_map(data, offset)
            inputs.append(PsbtInput(records))

        outputs = []
        for _ in unsigned_tx.outputs:
            records, offset = _read_map(data, offset)
            outputs.append(records)

        if offset != len(data):
            raise DecodeError(f"{len(data) - offset} trailing bytes after PSBT")

        return cls(
            unsigned_tx=unsigned_tx,
            inputs=inputs,
            outputs=outputs,
            global_records=global_records,
        )

    @classmethod
    def from_base64(cls, encoded: str) -> Psbt:
        try:
            data = base64.b64decode(encoded.strip(), validate=True)
        except binascii.Error as e:
            raise DecodeError(f"Invalid PSBT base64: {e}") from e
        return cls.parse(data)

    def is_finalized(self) -> bool:
        return all(psbt_input.is_finalized for psbt_input in self.inputs)

    def extract_tx(self) -> Transaction:
        """
        Build the network transaction from the finalized inputs.

        Raises:
            ValueError: If any input has not been finalized by the signer
        """
        pending = [i for i, psbt_input in enumerate(self.inputs) if not psbt_input.is_finalized]
        if pending:
            raise ValueError(f"PSBT inputs not finalized: {pending}")

        tx = Transaction(
            version=self.unsigned_tx.version,
            inputs=[],
            outputs=list(self.unsigned_tx.outputs),
            locktime=self.unsigned_tx.locktime,
        )
        for inp, psbt_input in zip(self.unsigned_tx.inputs, self.inputs, strict=True):
            tx.inputs.append(
                TxInput(
                    txid=inp.txid,
                    vout=inp.vout,
                    sequence=inp.sequence,
                    script_sig=psbt_input.final_script_sig or b"",
                    witness=psbt_input.final_script_witness or [],
                )
            )
        return tx


def _is_hex(encoded: str) -> bool:
    return len(encoded) % 2 == 0 and all(c in string.hexdigits for c in encoded)


def decode_signed_transaction(encoded: str) -> Transaction:
    """
    Decode a signed transaction submitted as PSBT (base64 or hex) or raw hex.

    Raises:
        ValueError: If the payload cannot be decoded or a PSBT is not finalized
    """
    encoded = encoded.strip()
    if not encoded:
        raise DecodeError("Empty transaction payload")

    if _is_hex(encoded):
        data = bytes.fromhex(encoded)
    else:
        try:
            data = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise DecodeError(f"Payload is neither hex nor base64: {e}") from e

    if data.startswith(PSBT_MAGIC):
        return Psbt.parse(data).extract_tx()

    try:
        return Transaction.parse(data)
    except DecodeError as e:
        # 00 01 is also how a legacy transaction with no inputs and one output starts
        try:
            return Transaction.parse(data, allow_witness=False)
        except DecodeError:
            raise e from None

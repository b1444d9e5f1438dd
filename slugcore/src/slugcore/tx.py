"""
Bitcoin transaction model and wire codec.

Serialization follows BIP144: the SegWit marker/flag and witness section are
written only when at least one input carries witness data, so unsigned
skeletons serialize in the legacy format expected inside a PSBT.
"""

from __future__ import annotations

import hashlib
import math
import struct
from dataclasses import dataclass, field

from slugcore.constants import SEQUENCE_FINAL
from slugcore.errors import DecodeError

WITNESS_SCALE_FACTOR = 4


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_bytes(data: bytes, offset: int, length: int) -> tuple[bytes, int]:
    """Read ``length`` bytes at ``offset``; returns (chunk, new_offset)."""
    end = offset + length
    if length < 0 or end > len(data):
        raise DecodeError(f"Unexpected end of data: need {length} bytes at offset {offset}")
    return data[offset:end], end


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint; returns (value, new_offset)."""
    first, offset = read_bytes(data, offset, 1)
    if first[0] < 0xFD:
        return first[0], offset
    if first[0] == 0xFD:
        raw, offset = read_bytes(data, offset, 2)
        return struct.unpack("<H", raw)[0], offset
    if first[0] == 0xFE:
        raw, offset = read_bytes(data, offset, 4)
        return struct.unpack("<I", raw)[0], offset
    raw, offset = read_bytes(data, offset, 8)
    return struct.unpack("<Q", raw)[0], offset


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in RPC format (big-endian), need to reverse for raw tx
    txid_bytes = bytes.fromhex(txid)[::-1]
    return txid_bytes + struct.pack("<I", vout)


def serialize_witness(stack: list[bytes]) -> bytes:
    result = varint(len(stack))
    for item in stack:
        result += varint(len(item)) + item
    return result


def read_witness(data: bytes, offset: int) -> tuple[list[bytes], int]:
    count, offset = read_varint(data, offset)
    stack: list[bytes] = []
    for _ in range(count):
        item_len, offset = read_varint(data, offset)
        item, offset = read_bytes(data, offset, item_len)
        stack.append(item)
    return stack, offset


@dataclass
class TxInput:
    """Transaction input."""

    txid: str
    vout: int
    sequence: int = SEQUENCE_FINAL
    script_sig: bytes = b""
    witness: list[bytes] = field(default_factory=list)

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    def serialize(self) -> bytes:
        return (
            serialize_outpoint(self.txid, self.vout)
            + varint(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )


@dataclass
class TxOutput:
    """Transaction output."""

    value: int
    scriptpubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<Q", self.value) + varint(len(self.scriptpubkey)) + self.scriptpubkey

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> tuple[TxOutput, int]:
        raw_value, offset = read_bytes(data, offset, 8)
        script_len, offset = read_varint(data, offset)
        script, offset = read_bytes(data, offset, script_len)
        return cls(value=struct.unpack("<Q", raw_value)[0], scriptpubkey=script), offset


@dataclass
class Transaction:
    """
    A Bitcoin transaction.

    Input and output order is significant and is never changed by any method.
    """

    version: int = 2
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    locktime: int = 0

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize transaction to bytes."""
        with_witness = include_witness and self.has_witness

        # Version (4 bytes, little-endian)
        result = struct.pack("<I", self.version)

        if with_witness:
            # Marker and flag for SegWit
            result += bytes([0x00, 0x01])

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.serialize()

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if with_witness:
            for inp in self.inputs:
                result += serialize_witness(inp.witness)

        result += struct.pack("<I", self.locktime)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    @classmethod
    def parse(cls, data: bytes, allow_witness: bool = True) -> Transaction:
        """
        Parse a transaction from bytes.

        With ``allow_witness`` False the bytes are read as a legacy serialization,
        so a transaction with no inputs is not mistaken for a SegWit marker.

        Raises:
            DecodeError: On truncated, oversized or otherwise malformed data
        """
        raw_version, offset = read_bytes(data, 0, 4)
        version = struct.unpack("<I", raw_version)[0]

        # Check for SegWit marker
        has_witness = False
        if (
            allow_witness
            and len(data) > offset + 1
            and data[offset] == 0x00
            and data[offset + 1] == 0x01
        ):
            has_witness = True
            offset += 2

        input_count, offset = read_varint(data, offset)
        inputs: list[TxInput] = []
        for _ in range(input_count):
            txid_le, offset = read_bytes(data, offset, 32)
            raw_vout, offset = read_bytes(data, offset, 4)
            script_len, offset = read_varint(data, offset)
            script_sig, offset = read_bytes(data, offset, script_len)
            raw_sequence, offset = read_bytes(data, offset, 4)
            inputs.append(
                TxInput(
                    txid=txid_le[::-1].hex(),
                    vout=struct.unpack("<I", raw_vout)[0],
                    sequence=struct.unpack("<I", raw_sequence)[0],
                    script_sig=script_sig,
                )
            )

        output_count, offset = read_varint(data, offset)
        outputs: list[TxOutput] = []
        for _ in range(output_count):
            output, offset = TxOutput.parse(data, offset)
            outputs.append(output)

        if has_witness:
            for inp in inputs:
                inp.witness, offset = read_witness(data, offset)

        raw_locktime, offset = read_bytes(data, offset, 4)

        if offset != len(data):
            raise DecodeError(f"{len(data) - offset} trailing bytes after transaction")

        return cls(
            version=version,
            inputs=inputs,
            outputs=outputs,
            locktime=struct.unpack("<I", raw_locktime)[0],
        )

    @classmethod
    def from_hex(cls, tx_hex: str) -> Transaction:
        try:
            data = bytes.fromhex(tx_hex.strip())
        except ValueError as e:
            raise DecodeError(f"Invalid transaction hex: {e}") from e
        return cls.parse(data)

    @property
    def txid(self) -> str:
        """Calculate txid (double SHA256 of non-witness data)."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    @property
    def vsize(self) -> int:
        return math.ceil(self.weight / WITNESS_SCALE_FACTOR)

    def total_output_value(self) -> int:
        return sum(out.value for out in self.outputs)

"""
Bitcoin address <-> scriptPubKey conversion.

Supports:
- Native SegWit v0 (P2WPKH, P2WSH), bech32 (BIP173)
- SegWit v1+ (P2TR and future versions), bech32m (BIP350)
- Legacy P2PKH and P2SH, base58check

Addresses are always checked against the configured network.
"""

from __future__ import annotations

import base58

from slugcore.network import NetworkType, get_network_params
from slugcore.script import parse_witness_program

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2BC830A3


def bech32_polymod(values: list[int]) -> int:
    """Bech32 checksum polymod"""
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= gen[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for bech32"""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: list[int], const: int = BECH32_CONST) -> list[int]:
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ const
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_encode(hrp: str, data: list[int], const: int = BECH32_CONST) -> str:
    combined = data + bech32_create_checksum(hrp, data, const)
    return hrp + "1" + "".join([CHARSET[d] for d in combined])


def bech32_decode(bech: str) -> tuple[str, list[int], int]:
    """
    Decode a bech32 or bech32m string.

    Returns:
        (hrp, data without checksum, checksum constant)
    """
    if any(ord(x) < 33 or ord(x) > 126 for x in bech):
        raise ValueError("Invalid character in bech32 string")
    if bech.lower() != bech and bech.upper() != bech:
        raise ValueError("Mixed case bech32 string")

    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech) or len(bech) > 90:
        raise ValueError("Invalid bech32 separator position or length")

    hrp = bech[:pos]
    data = [CHARSET.find(x) for x in bech[pos + 1 :]]
    if -1 in data:
        raise ValueError("Invalid bech32 data character")

    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise ValueError("Invalid bech32 checksum")

    return hrp, data[:-6], const


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid bits")

    return ret


def decode_segwit_address(hrp: str, address: str) -> tuple[int, bytes]:
    """
    Decode a SegWit address into (witness version, witness program).

    Raises:
        ValueError: If the address is invalid or belongs to another network
    """
    got_hrp, data, const = bech32_decode(address)
    if got_hrp != hrp:
        raise ValueError(f"Address HRP {got_hrp!r} does not match expected {hrp!r}")
    if not data:
        raise ValueError("Empty witness data")

    witver = data[0]
    witprog = bytes(convertbits(data[1:], 5, 8, pad=False))

    if witver > 16:
        raise ValueError(f"Invalid witness version: {witver}")
    if len(witprog) < 2 or len(witprog) > 40:
        raise ValueError(f"Invalid witness program length: {len(witprog)}")
    if witver == 0 and len(witprog) not in (20, 32):
        raise ValueError(f"Invalid v0 witness program length: {len(witprog)}")
    # BIP350: v0 uses bech32, everything else bech32m
    expected_const = BECH32_CONST if witver == 0 else BECH32M_CONST
    if const != expected_const:
        raise ValueError(f"Wrong checksum variant for witness version {witver}")

    return witver, witprog


def encode_segwit_address(hrp: str, witver: int, witprog: bytes) -> str:
    const = BECH32_CONST if witver == 0 else BECH32M_CONST
    return bech32_encode(hrp, [witver] + convertbits(witprog, 8, 5), const)


def witness_program_script(witver: int, witprog: bytes) -> bytes:
    """Build the scriptPubKey for a witness program: OP_n <program>"""
    opcode = 0x00 if witver == 0 else 0x50 + witver
    return bytes([opcode, len(witprog)]) + witprog


def address_to_scriptpubkey(
    address: str, network: NetworkType | str = NetworkType.MAINNET
) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Raises:
        ValueError: If the address is malformed or not valid for ``network``
    """
    params = get_network_params(network)
    network_name = NetworkType(network).value

    if address.lower().startswith(params.bech32_hrp + "1"):
        witver, witprog = decode_segwit_address(params.bech32_hrp, address)
        return witness_program_script(witver, witprog)

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid {network_name} address {address}: {e}") from e

    if len(decoded) != 21:
        raise ValueError(f"Invalid {network_name} address {address}: bad payload length")

    version = decoded[0]
    payload = decoded[1:]

    if version == params.p2pkh_version:
        # P2PKH: OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == params.p2sh_version:
        # P2SH: OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise ValueError(f"Address {address} is not valid for {network_name}")


def scriptpubkey_to_address(
    scriptpubkey: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """Convert scriptPubKey to address."""
    params = get_network_params(network)

    program = parse_witness_program(scriptpubkey)
    if program is not None:
        witver, witprog = program
        return encode_segwit_address(params.bech32_hrp, witver, witprog)

    if (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == bytes([0x76, 0xA9, 0x14])
        and scriptpubkey[23:] == bytes([0x88, 0xAC])
    ):
        payload = bytes([params.p2pkh_version]) + scriptpubkey[3:23]
        return base58.b58encode_check(payload).decode("ascii")

    if (
        len(scriptpubkey) == 23
        and scriptpubkey[:2] == bytes([0xA9, 0x14])
        and scriptpubkey[22] == 0x87
    ):
        payload = bytes([params.p2sh_version]) + scriptpubkey[2:22]
        return base58.b58encode_check(payload).decode("ascii")

    raise ValueError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")

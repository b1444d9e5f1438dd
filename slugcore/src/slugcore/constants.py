"""
Bitcoin policy and Slugline protocol constants.

The parent transaction layout relies on three policy features of Bitcoin Core 28+:
- Pay-to-anchor (P2A) outputs: a keyless, anyone-can-spend 0-value output
- TRUC (version 3) transactions, which may pay zero fee when relayed in a package
- Package relay via the submitpackage RPC
"""

from __future__ import annotations

# Pay-to-anchor scriptPubKey: OP_1 <0x4e73>
ANCHOR_SCRIPT = bytes([0x51, 0x02, 0x4E, 0x73])
ANCHOR_VALUE = 0

# Anchor output is always the first output of a parent transaction
ANCHOR_VOUT = 0

# TRUC transactions are the only ones eligible for zero-fee parent package relay
PACKAGE_TX_VERSION = 3

# BIP125 opt-in RBF with no relative locktime (0xFFFFFFFD)
SEQUENCE_RBF_NO_LOCKTIME = 0xFFFFFFFD
SEQUENCE_FINAL = 0xFFFFFFFF

# TRUC policy limits (virtual bytes)
TRUC_MAX_VSIZE = 10_000
TRUC_CHILD_MAX_VSIZE = 1_000

# Bitcoin Core default dust relay fee, in sat/kvB
DUST_RELAY_FEE = 3000

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis

# Placeholder witness sizes used to estimate vsize before the wallet signs.
# DER signatures are at most 72 bytes including the sighash byte.
P2WPKH_SIGNATURE_SIZE = 72
COMPRESSED_PUBKEY_SIZE = 33
# Schnorr signature with SIGHASH_DEFAULT
P2TR_SIGNATURE_SIZE = 64

# Rune tracked by default by both the spender and the searcher
DEFAULT_RUNE_NAME = "TESTSLUGLINERUNE"

SATS_PER_BTC = 100_000_000

"""
Indexer and node backend implementations.

Available backends:
- OrdBackend: rune balances and transaction outputs from an ord server
- BitcoinCoreWallet: Bitcoin Core wallet RPC (listunspent, signing, submitpackage)
"""

from slugcore.backends.base import AssetIndexer, WalletNode
from slugcore.backends.bitcoin_core import BitcoinCoreWallet, build_rpc_url
from slugcore.backends.ord import OrdBackend

__all__ = [
    "AssetIndexer",
    "BitcoinCoreWallet",
    "OrdBackend",
    "WalletNode",
    "build_rpc_url",
]

"""
slugcore - Core library for Slugline components

Provides the shared transaction model, PSBT codec, anchor contract and
indexer/node backends used by the spender and the searcher.
"""

__version__ = "0.1.0"

from slugcore.constants import (
    ANCHOR_SCRIPT,
    DEFAULT_RUNE_NAME,
    PACKAGE_TX_VERSION,
    SEQUENCE_RBF_NO_LOCKTIME,
)
from slugcore.contract import (
    ParentTransaction,
    anchor_output,
    asset_input,
    check_anchor,
    is_anchor_output,
)
from slugcore.errors import (
    AssetNotFound,
    DecodeError,
    InsufficientFunds,
    InsufficientSearcherFunds,
    MalformedInput,
    MissingAnchor,
    NoAssetUtxo,
    NoSearcherFunds,
    PackageRejected,
    ResourceFailure,
    RpcFailure,
    SluglineError,
    ValidationFailure,
)
from slugcore.models import UTXO, RuneBalance
from slugcore.network import NetworkType, get_network_params
from slugcore.psbt import Psbt, decode_signed_transaction
from slugcore.tx import Transaction, TxInput, TxOutput

__all__ = [
    "ANCHOR_SCRIPT",
    "AssetNotFound",
    "DEFAULT_RUNE_NAME",
    "DecodeError",
    "InsufficientFunds",
    "InsufficientSearcherFunds",
    "MalformedInput",
    "MissingAnchor",
    "NetworkType",
    "NoAssetUtxo",
    "NoSearcherFunds",
    "PACKAGE_TX_VERSION",
    "PackageRejected",
    "ParentTransaction",
    "Psbt",
    "ResourceFailure",
    "RpcFailure",
    "RuneBalance",
    "SEQUENCE_RBF_NO_LOCKTIME",
    "SluglineError",
    "Transaction",
    "TxInput",
    "TxOutput",
    "UTXO",
    "ValidationFailure",
    "anchor_output",
    "asset_input",
    "check_anchor",
    "decode_signed_transaction",
    "get_network_params",
    "is_anchor_output",
]

"""
Error taxonomy shared by the spender and the searcher.

Every failure the pipelines can produce is a named subclass of SluglineError
with a stable ``kind`` identifier, so callers (and the HTTP endpoint) never
have to report a generic failure.
"""

from __future__ import annotations

from typing import Any


class SluglineError(Exception):
    """Base class for all Slugline failures."""

    kind = "slugline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class DecodeError(ValueError):
    """Raised by the transaction and PSBT codecs on malformed bytes."""

    pass


# Validation failures: detected before any wallet or mempool interaction.


class ValidationFailure(SluglineError):
    kind = "validation_failure"


class MalformedInput(ValidationFailure):
    kind = "malformed_input"


class MissingAnchor(ValidationFailure):
    kind = "missing_anchor"


class AssetNotFound(ValidationFailure):
    kind = "asset_not_found"


# Resource failures: detected before a transaction is completed.


class ResourceFailure(SluglineError):
    kind = "resource_failure"


class InsufficientFunds(ResourceFailure):
    kind = "insufficient_funds"

    def __init__(self, available: int, required: int):
        super().__init__(
            f"Insufficient funds. Available: {available} sats, Required: {required} sats"
        )
        self.available = available
        self.required = required

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"available": self.available, "required": self.required})
        return data


class NoAssetUtxo(ResourceFailure):
    kind = "no_asset_utxo"

    def __init__(self, rune: str, address: str = ""):
        location = f" at {address}" if address else ""
        super().__init__(f"No unspent output carrying {rune}{location}")
        self.rune = rune
        self.address = address


class NoSearcherFunds(ResourceFailure):
    kind = "no_searcher_funds"

    def __init__(self, message: str = "No UTXOs available in searcher wallet"):
        super().__init__(message)


class InsufficientSearcherFunds(ResourceFailure):
    kind = "insufficient_searcher_funds"

    def __init__(self, available: int, fee: int, dust_threshold: int):
        super().__init__(
            f"Searcher UTXO of {available} sats cannot cover a package fee of {fee} sats "
            f"while keeping its output above the dust threshold ({dust_threshold} sats)"
        )
        self.available = available
        self.fee = fee
        self.dust_threshold = dust_threshold

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {"available": self.available, "fee": self.fee, "dust_threshold": self.dust_threshold}
        )
        return data


# External collaborator failures.


class RpcFailure(SluglineError):
    """A node or indexer call failed. ``call`` names the RPC method or endpoint."""

    kind = "rpc_failure"

    def __init__(self, call: str, message: str):
        super().__init__(f"{call} failed: {message}")
        self.call = call
        self.detail = message

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["call"] = self.call
        return data


class PackageRejected(SluglineError):
    """The node refused the package. ``message`` is the node's own reject reason."""

    kind = "package_rejected"

    def __init__(self, txid: str, message: str):
        super().__init__(message)
        self.txid = txid

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["txid"] = self.txid
        return data

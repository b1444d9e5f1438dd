"""
Core data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from slugcore.constants import SATS_PER_BTC
from slugcore.tx import TxOutput


def btc_to_sats(amount: float | str | Decimal) -> int:
    """Convert a BTC amount as returned by Bitcoin Core RPC to satoshis, exactly."""
    return int(Decimal(str(amount)) * SATS_PER_BTC)


def parse_outpoint(outpoint: str) -> tuple[str, int]:
    """Parse an outpoint in format "txid:vout"."""
    parts = outpoint.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid outpoint format: {outpoint}")
    txid, vout_str = parts
    return txid, int(vout_str)


class RuneBalance(BaseModel):
    amount: int = Field(..., ge=0)
    divisibility: int = Field(default=0, ge=0, le=38)
    symbol: str = ""


class UTXO(BaseModel):
    """
    Snapshot of a spendable output as reported by the indexer or the node wallet.

    ``runes`` maps rune name to balance; empty means no tracked asset.
    """

    txid: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    vout: int = Field(..., ge=0)
    value: int = Field(..., ge=0)
    scriptpubkey: str = ""
    address: str = ""
    confirmations: int = Field(default=0, ge=0)
    spent: bool = False
    runes: dict[str, RuneBalance] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("runes", mode="before")
    @classmethod
    def normalize_runes(cls, v: Any) -> Any:
        # Older ord releases encode balances as [[name, balance], ...]
        if isinstance(v, list):
            return {name: balance for name, balance in v}
        return v or {}

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    @property
    def script(self) -> bytes:
        return bytes.fromhex(self.scriptpubkey)

    def rune_amount(self, rune: str) -> int:
        balance = self.runes.get(rune)
        return balance.amount if balance else 0

    def carries_rune(self, rune: str) -> bool:
        return self.rune_amount(rune) > 0

    def to_prevout(self) -> TxOutput:
        return TxOutput(value=self.value, scriptpubkey=self.script)

    @classmethod
    def from_ord(cls, data: dict[str, Any]) -> UTXO:
        """Build from an ord ``/outputs/<address>`` record."""
        txid, vout = parse_outpoint(data["outpoint"])
        return cls(
            txid=txid,
            vout=vout,
            value=data["value"],
            scriptpubkey=data.get("script_pubkey", ""),
            address=data.get("address") or "",
            confirmations=data.get("confirmations", 0),
            spent=data.get("spent", False),
            runes=data.get("runes") or {},
        )

    @classmethod
    def from_listunspent(cls, data: dict[str, Any]) -> UTXO:
        """Build from a Bitcoin Core ``listunspent`` entry."""
        return cls(
            txid=data["txid"],
            vout=data["vout"],
            value=btc_to_sats(data["amount"]),
            scriptpubkey=data.get("scriptPubKey", ""),
            address=data.get("address", ""),
            confirmations=data.get("confirmations", 0),
        )

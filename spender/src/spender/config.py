"""
Configuration for the Slugline spender.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from slugcore.constants import DEFAULT_RUNE_NAME
from slugcore.network import NetworkType


class SpenderConfig(BaseModel):
    """Configuration for building and submitting a parent transaction."""

    network: NetworkType = NetworkType.MAINNET
    ord_server: str = Field(default="http://localhost", description="ord server base URL")
    rune_name: str = Field(default=DEFAULT_RUNE_NAME, min_length=1)

    # Parent transaction
    payment_address: str = Field(..., min_length=1, description="Address paying the amount")
    rune_address: str = Field(..., min_length=1, description="Address holding the rune UTXO")
    destination_address: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Payment amount in sats")

    # Timeouts
    http_timeout: float = Field(default=30.0, gt=0)

    @field_validator("ord_server")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

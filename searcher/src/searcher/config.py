"""
Configuration management for the searcher.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from slugcore.constants import DEFAULT_RUNE_NAME
from slugcore.network import NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET

    bitcoind_host: str = "localhost"
    # Defaults to the network's RPC port
    bitcoind_port: int | None = None
    bitcoind_user: str | None = None
    bitcoind_password: str | None = None
    wallet: str = "searcher"

    ord_server: str = "http://localhost"
    rune_name: str = DEFAULT_RUNE_NAME

    fee_rate: Decimal = Field(default=Decimal("100.0"), ge=0)  # sat/vB for the whole package
    min_conf: int = Field(default=1, ge=0)

    http_host: str = "127.0.0.1"
    http_port: int = 3000

    log_level: str = "INFO"

    rpc_timeout: float = 30.0


def get_settings(**overrides: object) -> Settings:
    return Settings(**overrides)  # type: ignore[arg-type]

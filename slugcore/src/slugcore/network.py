"""
Per-network connection and address-encoding parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    TESTNET4 = "testnet4"
    SIGNET = "signet"
    REGTEST = "regtest"


@dataclass(frozen=True)
class NetworkParams:
    rpc_port: int
    bech32_hrp: str
    p2pkh_version: int
    p2sh_version: int


NETWORK_PARAMS: dict[NetworkType, NetworkParams] = {
    NetworkType.MAINNET: NetworkParams(
        rpc_port=8332, bech32_hrp="bc", p2pkh_version=0x00, p2sh_version=0x05
    ),
    NetworkType.TESTNET: NetworkParams(
        rpc_port=18332, bech32_hrp="tb", p2pkh_version=0x6F, p2sh_version=0xC4
    ),
    NetworkType.TESTNET4: NetworkParams(
        rpc_port=48332, bech32_hrp="tb", p2pkh_version=0x6F, p2sh_version=0xC4
    ),
    NetworkType.SIGNET: NetworkParams(
        rpc_port=38332, bech32_hrp="tb", p2pkh_version=0x6F, p2sh_version=0xC4
    ),
    NetworkType.REGTEST: NetworkParams(
        rpc_port=18443, bech32_hrp="bcrt", p2pkh_version=0x6F, p2sh_version=0xC4
    ),
}


def get_network_params(network: NetworkType | str) -> NetworkParams:
    """Look up parameters for a network name or NetworkType."""
    return NETWORK_PARAMS[NetworkType(network)]

"""
Package submission through Bitcoin Core's submitpackage RPC.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger
from slugcore.backends.base import WalletNode
from slugcore.errors import PackageRejected
from slugcore.tx import Transaction

PACKAGE_SUCCESS = "success"


@dataclass
class PackageResult:
    parent_txid: str
    child_txid: str
    package_msg: str

    @property
    def txids(self) -> list[str]:
        return [self.parent_txid, self.child_txid]


def interpret_package_result(
    result: dict[str, Any], parent_txid: str, child_txid: str
) -> PackageResult:
    """
    Turn a submitpackage response into a PackageResult.

    Raises:
        PackageRejected: With the txid and reject reason of the first failing
            transaction, or the package message when no transaction has one
    """
    package_msg = result.get("package_msg", "")
    if package_msg == PACKAGE_SUCCESS:
        return PackageResult(
            parent_txid=parent_txid, child_txid=child_txid, package_msg=package_msg
        )

    for wtxid, tx_result in (result.get("tx-results") or {}).items():
        error = tx_result.get("error")
        if error:
            txid = tx_result.get("txid", wtxid)
            logger.error(f"Transaction {txid} rejected: {error}")
            raise PackageRejected(txid, error)

    logger.error(f"Package rejected: {package_msg}")
    raise PackageRejected("", package_msg or "Package rejected without a reason")


async def submit_package(
    node: WalletNode, parent: Transaction, child: Transaction
) -> PackageResult:
    """
    Submit [parent, child] in that order. No retries.

    Raises:
        PackageRejected: If the node refuses the package
        RpcFailure: If the RPC call itself fails
    """
    parent_txid = parent.txid
    child_txid = child.txid
    logger.info(f"Submitting package: parent {parent_txid}, child {child_txid}")

    result = await node.submit_package([parent.to_hex(), child.to_hex()])
    logger.debug(f"submitpackage result: {result}")

    package = interpret_package_result(result or {}, parent_txid, child_txid)
    logger.info(f"Package submitted successfully: {package.txids}")
    return package

"""
Searcher pipeline: validate a submitted parent, sponsor it with a CPFP child
and relay both as one package.
"""

from __future__ import annotations

from decimal import Decimal

from loguru import logger
from slugcore.backends.base import AssetIndexer, WalletNode
from slugcore.backends.bitcoin_core import BitcoinCoreWallet, build_rpc_url
from slugcore.backends.ord import OrdBackend
from slugcore.errors import DecodeError, RpcFailure
from slugcore.models import UTXO
from slugcore.tx import Transaction

from searcher.config import Settings
from searcher.cpfp import (
    SelectionStrategy,
    UtxoReservations,
    build_cpfp_child,
    select_first_available,
)
from searcher.submitter import PackageResult, submit_package
from searcher.validator import PackageValidator

SIGN_METHOD = "signrawtransactionwithwallet"


class SearcherService:
    def __init__(
        self,
        validator: PackageValidator,
        wallet: WalletNode,
        fee_rate: Decimal | float | str,
        reservations: UtxoReservations | None = None,
        strategy: SelectionStrategy = select_first_available,
        min_conf: int = 1,
    ):
        self.validator = validator
        self.wallet = wallet
        self.fee_rate = Decimal(str(fee_rate))
        self.reservations = reservations or UtxoReservations()
        self.strategy = strategy
        self.min_conf = min_conf

    @classmethod
    def from_settings(cls, settings: Settings) -> SearcherService:
        indexer: AssetIndexer = OrdBackend(settings.ord_server, timeout=settings.rpc_timeout)
        wallet = BitcoinCoreWallet(
            rpc_url=build_rpc_url(
                settings.bitcoind_host, settings.network, settings.bitcoind_port
            ),
            wallet_name=settings.wallet,
            rpc_user=settings.bitcoind_user,
            rpc_password=settings.bitcoind_password,
            timeout=settings.rpc_timeout,
        )
        validator = PackageValidator(indexer, network=settings.network, rune=settings.rune_name)
        return cls(validator, wallet, settings.fee_rate, min_conf=settings.min_conf)

    async def sign_child(self, child_tx: Transaction, prevtxs: list[dict]) -> Transaction:
        """
        Have the node wallet sign the searcher input of the child.

        Raises:
            RpcFailure: If signing is incomplete or returns an undecodable transaction
        """
        signed = await self.wallet.sign_raw_transaction_with_wallet(child_tx.to_hex(), prevtxs)
        if not signed or not signed.get("complete"):
            errors = (signed or {}).get("errors") or []
            detail = "; ".join(e.get("error", str(e)) for e in errors) or "signing incomplete"
            raise RpcFailure(SIGN_METHOD, detail)

        try:
            return Transaction.from_hex(signed["hex"])
        except (KeyError, DecodeError) as e:
            raise RpcFailure(SIGN_METHOD, f"returned an invalid transaction: {e}") from e

    async def list_candidates(self) -> list[UTXO]:
        candidates = await self.wallet.list_unspent(min_conf=self.min_conf)
        logger.info(f"Searcher wallet has {len(candidates)} UTXOs")
        return candidates

    async def process_submission(self, encoded: str) -> PackageResult:
        """
        Run one submission through validation, CPFP construction, signing
        and package relay.

        Raises:
            ValidationFailure: Before any wallet call is made
            NoSearcherFunds, InsufficientSearcherFunds: Before signing
            RpcFailure, PackageRejected: From the node
        """
        parent = await self.validator.validate_parent(encoded)

        async with self.reservations.hold(self.list_candidates, self.strategy) as utxo:
            logger.info(f"Funding child with {utxo.outpoint} ({utxo.value} sats)")
            child = build_cpfp_child(parent.tx, utxo, self.fee_rate)

            signed_child = await self.sign_child(child.tx, [child.anchor_prevout])
            logger.info(f"Signed child {signed_child.txid} ({signed_child.vsize} vB)")

            return await submit_package(self.wallet, parent.tx, signed_child)

    async def close(self) -> None:
        await self.validator.indexer.close()
        await self.wallet.close()

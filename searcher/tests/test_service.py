"""
Tests for the searcher submission pipeline.
"""

import asyncio
from decimal import Decimal

import pytest

from slugcore.backends.bitcoin_core import BitcoinCoreWallet
from slugcore.backends.ord import OrdBackend
from slugcore.errors import (
    InsufficientSearcherFunds,
    MissingAnchor,
    NoSearcherFunds,
    PackageRejected,
    RpcFailure,
)
from slugcore.network import NetworkType
from slugcore.tx import Transaction
from searcher.config import Settings
from searcher.service import SearcherService
from searcher.validator import PackageValidator

RUNE = "TESTSLUGLINERUNE"


@pytest.fixture
def service(indexer, wallet) -> SearcherService:
    validator = PackageValidator(indexer, network=NetworkType.REGTEST, rune=RUNE)
    return SearcherService(validator, wallet, fee_rate=10)


@pytest.mark.asyncio
async def test_sponsors_valid_parent(service, wallet, parent_psbt, parent_tx):
    result = await service.process_submission(parent_psbt.to_base64())

    assert result.parent_txid == parent_tx.txid
    wallet.list_unspent.assert_awaited_once_with(min_conf=1)

    tx_hex, prevtxs = wallet.sign_raw_transaction_with_wallet.await_args.args
    unsigned_child = Transaction.from_hex(tx_hex)
    assert unsigned_child.inputs[0].outpoint == f"{parent_tx.txid}:0"
    assert prevtxs == [
        {"txid": parent_tx.txid, "vout": 0, "scriptPubKey": "51024e73", "amount": 0}
    ]

    (package,) = wallet.submit_package.await_args.args
    parent_hex, child_hex = package
    assert parent_hex == parent_tx.to_hex()
    child = Transaction.from_hex(child_hex)
    assert child.txid == result.child_txid
    assert child.inputs[1].witness
    assert child.outputs[0].value == 100_000 - (parent_tx.vsize + 151) * 10

    assert len(service.reservations) == 0


@pytest.mark.asyncio
async def test_invalid_parent_never_touches_wallet(service, wallet, make_parent):
    psbt = make_parent([])

    with pytest.raises(MissingAnchor):
        await service.process_submission(psbt.to_base64())

    wallet.list_unspent.assert_not_awaited()
    wallet.sign_raw_transaction_with_wallet.assert_not_awaited()
    wallet.submit_package.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_searcher_wallet(service, wallet, parent_psbt):
    wallet.list_unspent.return_value = []

    with pytest.raises(NoSearcherFunds):
        await service.process_submission(parent_psbt.to_base64())

    wallet.sign_raw_transaction_with_wallet.assert_not_awaited()


@pytest.mark.asyncio
async def test_searcher_utxo_too_small(service, wallet, parent_psbt, make_searcher_utxo):
    wallet.list_unspent.return_value = [make_searcher_utxo(1_000)]

    with pytest.raises(InsufficientSearcherFunds):
        await service.process_submission(parent_psbt.to_base64())

    wallet.sign_raw_transaction_with_wallet.assert_not_awaited()
    assert len(service.reservations) == 0


@pytest.mark.asyncio
async def test_incomplete_signing(service, wallet, parent_psbt):
    wallet.sign_raw_transaction_with_wallet.side_effect = None
    wallet.sign_raw_transaction_with_wallet.return_value = {
        "hex": "",
        "complete": False,
        "errors": [{"txid": "ee" * 32, "vout": 0, "error": "Input not found or already spent"}],
    }

    with pytest.raises(RpcFailure, match="Input not found") as exc_info:
        await service.process_submission(parent_psbt.to_base64())

    assert exc_info.value.call == "signrawtransactionwithwallet"
    wallet.submit_package.assert_not_awaited()
    assert len(service.reservations) == 0


@pytest.mark.asyncio
async def test_node_rejects_package(service, wallet, parent_psbt):
    wallet.submit_package.return_value = {
        "package_msg": "transaction failed",
        "tx-results": {"ff" * 32: {"txid": "ab" * 32, "error": "bad-txns-inputs-missingorspent"}},
    }

    with pytest.raises(PackageRejected, match="missingorspent"):
        await service.process_submission(parent_psbt.to_base64())

    assert len(service.reservations) == 0


@pytest.mark.asyncio
async def test_fee_rate_is_decimal(indexer, wallet):
    validator = PackageValidator(indexer, network=NetworkType.REGTEST, rune=RUNE)
    assert SearcherService(validator, wallet, fee_rate=2.5).fee_rate == Decimal("2.5")


@pytest.mark.asyncio
async def test_from_settings():
    settings = Settings(
        network=NetworkType.REGTEST,
        bitcoind_host="node",
        wallet="sponsor",
        ord_server="http://ord:8080/",
        rune_name="OTHERRUNE",
        fee_rate=Decimal("3"),
    )

    service = SearcherService.from_settings(settings)
    try:
        assert isinstance(service.wallet, BitcoinCoreWallet)
        assert service.wallet.rpc_url == "http://node:18443/wallet/sponsor"
        assert isinstance(service.validator.indexer, OrdBackend)
        assert service.validator.indexer.ord_url == "http://ord:8080"
        assert service.validator.rune == "OTHERRUNE"
        assert service.validator.network == NetworkType.REGTEST
        assert service.fee_rate == Decimal("3")
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_overlapping_submissions_never_share_a_searcher_utxo(
    service, wallet, parent_psbt
):
    first_submitted = asyncio.Event()
    listings = []

    async def list_unspent(min_conf=1):
        # Every listing after the first answers late, with the same stale UTXO
        listings.append(min_conf)
        if len(listings) > 1:
            await first_submitted.wait()
        return list(wallet.list_unspent.return_value)

    async def submit(tx_hexes):
        first_submitted.set()
        return {"package_msg": "success", "tx-results": {}}

    wallet.list_unspent.side_effect = list_unspent
    wallet.submit_package.side_effect = submit
    encoded = parent_psbt.to_base64()

    results = await asyncio.gather(
        service.process_submission(encoded),
        service.process_submission(encoded),
        return_exceptions=True,
    )

    assert sum(isinstance(r, NoSearcherFunds) for r in results) == 1
    assert wallet.submit_package.await_count == 1


@pytest.mark.asyncio
async def test_spent_searcher_utxo_not_reused(service, wallet, parent_psbt):
    await service.process_submission(parent_psbt.to_base64())

    with pytest.raises(NoSearcherFunds):
        await service.process_submission(parent_psbt.to_base64())

    assert wallet.submit_package.await_count == 1

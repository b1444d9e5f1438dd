"""
Tests for searcher UTXO reservations.
"""

import asyncio

import pytest

from slugcore.errors import NoSearcherFunds
from searcher.cpfp import UtxoReservations, select_first_available


def test_select_first_available(make_searcher_utxo):
    utxos = [make_searcher_utxo(), make_searcher_utxo()]
    assert select_first_available(utxos) == utxos[0]

    with pytest.raises(NoSearcherFunds):
        select_first_available([])


@pytest.mark.asyncio
async def test_reserved_utxo_is_skipped(make_searcher_utxo):
    reservations = UtxoReservations()
    first, second = make_searcher_utxo(), make_searcher_utxo()

    assert await reservations.reserve([first, second]) == first
    assert await reservations.reserve([first, second]) == second
    assert len(reservations) == 2
    assert reservations.is_reserved(first.outpoint)


@pytest.mark.asyncio
async def test_all_reserved(make_searcher_utxo):
    reservations = UtxoReservations()
    utxos = [make_searcher_utxo(), make_searcher_utxo()]
    await reservations.reserve(utxos)
    await reservations.reserve(utxos)

    with pytest.raises(NoSearcherFunds, match="All 2 searcher UTXOs are in use"):
        await reservations.reserve(utxos)


@pytest.mark.asyncio
async def test_empty_wallet():
    with pytest.raises(NoSearcherFunds, match="No UTXOs available"):
        await UtxoReservations().reserve([])


@pytest.mark.asyncio
async def test_release_makes_utxo_available(make_searcher_utxo):
    reservations = UtxoReservations()
    utxo = make_searcher_utxo()

    await reservations.reserve([utxo])
    await reservations.release(utxo)

    assert len(reservations) == 0
    assert await reservations.reserve([utxo]) == utxo


@pytest.mark.asyncio
async def test_concurrent_reservations_are_distinct(make_searcher_utxo):
    reservations = UtxoReservations()
    utxos = [make_searcher_utxo() for _ in range(3)]

    results = await asyncio.gather(
        *(reservations.reserve(utxos) for _ in range(4)), return_exceptions=True
    )

    reserved = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, NoSearcherFunds)]
    assert sorted(u.outpoint for u in reserved) == sorted(u.outpoint for u in utxos)
    assert len(failures) == 1


@pytest.mark.asyncio
async def test_hold_releases_on_error(make_searcher_utxo):
    reservations = UtxoReservations()
    utxo = make_searcher_utxo()

    with pytest.raises(RuntimeError):
        async with reservations.hold([utxo]) as held:
            assert reservations.is_reserved(held.outpoint)
            raise RuntimeError("signing failed")

    assert not reservations.is_reserved(utxo.outpoint)


@pytest.mark.asyncio
async def test_custom_strategy(make_searcher_utxo):
    reservations = UtxoReservations()
    small, large = make_searcher_utxo(1_000), make_searcher_utxo(90_000)

    def largest(candidates):
        return max(candidates, key=lambda u: u.value)

    async with reservations.hold([small, large], largest) as held:
        assert held == large


@pytest.mark.asyncio
async def test_snapshot_fetched_under_lock(make_searcher_utxo):
    reservations = UtxoReservations()
    utxo = make_searcher_utxo()
    fetches = []

    async def fetch():
        fetches.append(reservations._lock.locked())
        return [utxo]

    assert await reservations.reserve(fetch) == utxo
    assert fetches == [True]


@pytest.mark.asyncio
async def test_spent_utxo_skipped_while_still_listed(make_searcher_utxo):
    reservations = UtxoReservations()
    utxo = make_searcher_utxo()

    async with reservations.hold([utxo]):
        pass

    assert not reservations.is_reserved(utxo.outpoint)
    assert reservations.is_spent(utxo.outpoint)
    with pytest.raises(NoSearcherFunds, match="in use"):
        await reservations.reserve([utxo])


@pytest.mark.asyncio
async def test_spent_utxo_forgotten_once_unlisted(make_searcher_utxo):
    reservations = UtxoReservations()
    spent, change = make_searcher_utxo(), make_searcher_utxo()

    async with reservations.hold([spent]):
        pass

    assert await reservations.reserve([change]) == change
    assert not reservations.is_spent(spent.outpoint)

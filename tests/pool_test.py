from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from ascii_memcache import Client, ClientPool, PoolCounters, create_pool
from ascii_memcache.pool import ClientFactory
from conftest import LOCATION, FakeServer, wait_event


@pytest.fixture
def factory(mocker: MockerFixture) -> MagicMock:
    factory = mocker.MagicMock(spec=ClientFactory)
    factory.create.side_effect = lambda: mocker.MagicMock(spec=Client)
    factory.validate.return_value = True
    return factory


@pytest.mark.asyncio
async def test_borrow_and_release(factory: MagicMock) -> None:
    pool = ClientPool(factory, initial_pool_size=2, max_pool_size=2)
    assert pool.get_counters() == PoolCounters(
        available=2, active=0, stablished=2, total_created=2, total_discarded=0
    )

    async with pool.get_client() as first:
        async with pool.get_client() as second:
            async with pool.get_client() as third:
                assert len({id(first), id(second), id(third)}) == 3
                assert pool.get_counters() == PoolCounters(
                    available=0,
                    active=3,
                    stablished=3,
                    total_created=3,
                    total_discarded=0,
                )

    # Released over the max pool size, the extra client is destroyed
    factory.destroy.assert_awaited_once()
    assert pool.get_counters() == PoolCounters(
        available=2, active=0, stablished=2, total_created=3, total_discarded=0
    )


@pytest.mark.asyncio
async def test_invalid_clients_are_discarded(factory: MagicMock) -> None:
    pool = ClientPool(factory, initial_pool_size=1)
    factory.validate.return_value = False

    client = await pool.pop_client()
    assert pool.get_counters().total_discarded == 1
    await pool.release_client(client)
    assert pool.get_counters() == PoolCounters(
        available=0, active=0, stablished=0, total_created=2, total_discarded=2
    )


@pytest.mark.asyncio
async def test_destroy_errors_are_logged(factory: MagicMock) -> None:
    factory.destroy.side_effect = RuntimeError("boom")
    pool = ClientPool(factory, initial_pool_size=1)
    await pool.close()
    assert pool.get_counters().stablished == 0


@pytest.mark.asyncio
async def test_close(factory: MagicMock) -> None:
    pool = ClientPool(factory, initial_pool_size=2)
    borrowed = await pool.pop_client()
    await pool.close()
    assert factory.destroy.await_count == 1

    with pytest.raises(RuntimeError):
        await pool.pop_client()
    await pool.release_client(borrowed)
    assert factory.destroy.await_count == 2
    assert pool.get_counters().stablished == 0


@pytest.mark.asyncio
async def test_create_pool(server: FakeServer) -> None:
    pool = create_pool(LOCATION, initial_pool_size=1, max_pool_size=1, retries=7)
    async with pool.get_client() as client:
        assert isinstance(client, Client)
        assert client.options.retries == 7
    await pool.close()
    assert client.destroyed
    assert len(client.events.on_ready) == 0


@pytest.mark.asyncio
async def test_clients_that_gave_up_are_replaced(server: FakeServer) -> None:
    server.fail_with = ConnectionRefusedError("refused")
    pool = create_pool(LOCATION, max_pool_size=1, retries=1, retry_delay=0.01)
    client = await pool.pop_client()
    await wait_event(client.events.on_fatal)
    assert client.gave_up
    assert not client.destroyed

    await pool.release_client(client)
    assert pool.get_counters().total_discarded == 1

    server.fail_with = None
    async with pool.get_client() as borrowed:
        assert borrowed is not client
        await wait_event(borrowed.events.on_ready)
        assert not borrowed.gave_up
    await pool.close()

import itertools
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncGenerator,
    Deque,
    NamedTuple,
    Optional,
    Protocol,
    Union,
)

from ascii_memcache.client import Client
from ascii_memcache.configuration import ClientOptions, ServerAddress
from ascii_memcache.metrics.base import BaseMetricsCollector

_log: logging.Logger = logging.getLogger(__name__)


class PoolCounters(NamedTuple):
    # Idle clients in the pool, ready to be borrowed
    available: int
    # Clients currently borrowed
    active: int
    # Current live clients (available + active)
    stablished: int
    # Total # of clients created. If this keeps growing the pool
    # might be too small and clients keep being created:
    total_created: int
    # Total # of clients discarded because they were not usable
    total_discarded: int


class ClientFactory(Protocol):
    """
    What the pool needs to manage its clients
    """

    def create(self) -> Client:
        ...  # pragma: no cover

    async def destroy(self, client: Client) -> None:
        ...  # pragma: no cover

    def validate(self, client: Client) -> bool:
        ...  # pragma: no cover


class DefaultClientFactory:
    def __init__(
        self,
        location: Union[str, ServerAddress],
        options: Optional[ClientOptions] = None,
        metrics_collector: Optional[BaseMetricsCollector] = None,
        **option_overrides: Any,
    ) -> None:
        self._location = location
        self._options = options
        self._metrics_collector = metrics_collector
        self._option_overrides = option_overrides

    def create(self) -> Client:
        return Client(
            self._location,
            self._options,
            metrics_collector=self._metrics_collector,
            **self._option_overrides,
        )

    async def destroy(self, client: Client) -> None:
        client.events.clear()
        await client.end()

    def validate(self, client: Client) -> bool:
        return not (client.destroyed or client.gave_up)


class ClientPool:
    """
    Pool of clients to the same server.

    Each borrowed client is used by a single borrower until it is
    released, so commands of different borrowers never share a
    connection. Clients are created on demand, max_pool_size is a soft
    limit of idle clients: extra clients released when the pool is
    full are destroyed.
    """

    def __init__(
        self,
        factory: ClientFactory,
        initial_pool_size: int = 0,
        max_pool_size: int = 10,
    ) -> None:
        self._factory = factory
        self._initial_pool_size: int = min(initial_pool_size, max_pool_size)
        self._max_pool_size = max_pool_size
        self._created_counter: itertools.count[int] = itertools.count(start=1)
        self._created = 0
        self._destroyed_counter: itertools.count[int] = itertools.count(start=1)
        self._destroyed = 0
        self._discarded_counter: itertools.count[int] = itertools.count(start=1)
        self._discarded = 0
        self._closed = False
        self._pool: Deque[Client] = deque()
        for _ in range(self._initial_pool_size):
            self._pool.append(self._create_client())

    def get_counters(self) -> PoolCounters:
        available = len(self._pool)
        stablished = self._created - self._destroyed
        return PoolCounters(
            available=available,
            active=stablished - available,
            stablished=stablished,
            total_created=self._created,
            total_discarded=self._discarded,
        )

    def _create_client(self) -> Client:
        client = self._factory.create()
        self._created = next(self._created_counter)
        return client

    async def _destroy_client(self, client: Client, discarded: bool = False) -> None:
        if discarded:
            self._discarded = next(self._discarded_counter)
        self._destroyed = next(self._destroyed_counter)
        try:
            await self._factory.destroy(client)
        except Exception:
            _log.warning(f"Error destroying client {client}", exc_info=True)

    async def pop_client(self) -> Client:
        """
        Borrows a client, it must be given back with release_client
        """
        if self._closed:
            raise RuntimeError("Pool is closed")
        while self._pool:
            client = self._pool.popleft()
            if self._factory.validate(client):
                return client
            await self._destroy_client(client, discarded=True)
        return self._create_client()

    async def release_client(self, client: Client) -> None:
        if not self._factory.validate(client):
            await self._destroy_client(client, discarded=True)
        elif self._closed or len(self._pool) >= self._max_pool_size:
            await self._destroy_client(client)
        else:
            self._pool.append(client)

    @asynccontextmanager
    async def get_client(self) -> AsyncGenerator[Client, None]:
        client = await self.pop_client()
        try:
            yield client
        finally:
            await self.release_client(client)

    async def close(self) -> None:
        """
        Destroys idle clients. Borrowed clients are destroyed when
        released.
        """
        self._closed = True
        while self._pool:
            await self._destroy_client(self._pool.popleft())


def create_pool(
    location: Union[str, ServerAddress],
    initial_pool_size: int = 0,
    max_pool_size: int = 10,
    options: Optional[ClientOptions] = None,
    metrics_collector: Optional[BaseMetricsCollector] = None,
    **option_overrides: Any,
) -> ClientPool:
    """
    Helper to build a pool of clients with the same settings.
    Must be called with an event loop running if initial_pool_size > 0.
    """
    return ClientPool(
        factory=DefaultClientFactory(
            location,
            options,
            metrics_collector=metrics_collector,
            **option_overrides,
        ),
        initial_pool_size=initial_pool_size,
        max_pool_size=max_pool_size,
    )

import asyncio
from typing import Any, Callable, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest_asyncio
from pytest_mock import MockerFixture

from ascii_memcache.events.event import Event

LOCATION = "127.0.0.1:11211"


class FakeServer:
    """
    Stands in for loop.create_connection: hands the client mock
    transports and lets tests push replies through the protocol.
    """

    def __init__(self) -> None:
        self.attempts = 0
        self.fail_with: Optional[Exception] = None
        self.hang = False
        # When set, connections are only handed back once it is set
        self.hold: Optional[asyncio.Event] = None
        self.protocols: List[asyncio.Protocol] = []
        self.transports: List[MagicMock] = []

    async def create_connection(
        self,
        protocol_factory: Callable[[], asyncio.Protocol],
        host: str,
        port: int,
        **kwargs: Any,
    ) -> Tuple[MagicMock, asyncio.Protocol]:
        self.attempts += 1
        if self.hang:
            await asyncio.sleep(3600)
        if self.fail_with is not None:
            raise self.fail_with
        protocol = protocol_factory()
        transport = MagicMock(spec=asyncio.Transport)
        transport.is_closing.return_value = False
        transport.get_extra_info.return_value = None
        protocol.connection_made(transport)
        self.protocols.append(protocol)
        self.transports.append(transport)
        if self.hold is not None:
            await self.hold.wait()
        return transport, protocol

    @property
    def protocol(self) -> asyncio.Protocol:
        return self.protocols[-1]

    @property
    def transport(self) -> MagicMock:
        return self.transports[-1]

    def written(self) -> List[bytes]:
        return [c.args[0] for c in self.transport.write.call_args_list]

    def reply(self, data: bytes) -> None:
        self.protocol.data_received(data)

    def drop(self, exc: Optional[Exception] = None) -> None:
        self.protocol.connection_lost(exc)


def next_event(event: Event) -> "asyncio.Future[Tuple[Any, ...]]":
    future: "asyncio.Future[Tuple[Any, ...]]" = (
        asyncio.get_running_loop().create_future()
    )

    def handler(*args: Any) -> None:
        if not future.done():
            future.set_result(args)

    event += handler
    return future


async def wait_event(event: Event, timeout: float = 1.0) -> Tuple[Any, ...]:
    return await asyncio.wait_for(next_event(event), timeout)


@pytest_asyncio.fixture
async def server(mocker: MockerFixture) -> FakeServer:
    fake = FakeServer()
    mocker.patch.object(
        asyncio.get_running_loop(),
        "create_connection",
        side_effect=fake.create_connection,
    )
    return fake

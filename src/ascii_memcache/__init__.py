__version__ = "1.0.0"

from ascii_memcache.client import Client
from ascii_memcache.configuration import ClientOptions, ServerAddress
from ascii_memcache.connection.connection import Connection, ConnectionState
from ascii_memcache.errors import (
    ClientDestroyedError,
    ClientOrServerError,
    CommandError,
    ConnectionLostError,
    ConnectionTimeoutError,
    IdleTimeoutError,
    InvalidCommandError,
    MaxRetriesError,
    MemcacheError,
    ProtocolError,
    StoreError,
    UnexpectedResponseError,
    ValidationError,
)
from ascii_memcache.events.event import ClientEvents, Event
from ascii_memcache.pool import (
    ClientFactory,
    ClientPool,
    DefaultClientFactory,
    PoolCounters,
    create_pool,
)
from ascii_memcache.protocol import Command, Item, ReplyItems, ReturnType


def create_client(location: str, **options: object) -> Client:
    """
    Creates a client for the server at `location`, eg: `127.0.0.1:11211`
    """
    return Client(location, **options)

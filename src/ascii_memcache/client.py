import asyncio
from types import TracebackType
from typing import Any, Optional, Tuple, Type, Union

from ascii_memcache.commands.builders import (
    build_arithmetic_cmd,
    build_delete_cmd,
    build_flush_all_cmd,
    build_retrieval_cmd,
    build_storage_cmd,
    build_touch_cmd,
)
from ascii_memcache.configuration import ClientOptions, ServerAddress
from ascii_memcache.connection.connection import Connection, ConnectionState
from ascii_memcache.connection.queue import PendingCommand
from ascii_memcache.errors import ClientDestroyedError, MaxRetriesError, ValidationError
from ascii_memcache.events.event import ClientEvents
from ascii_memcache.metrics.base import BaseMetricsCollector
from ascii_memcache.protocol import Command, ReplyItems, ReturnType
from ascii_memcache.validation import (
    Expiration,
    Value,
    normalize_expiration,
    validate_cas,
    validate_delta,
    validate_flags,
    validate_key,
    validate_value,
)

Key = Union[str, bytes]


class Client:
    """
    memcached client over a single persistent connection.

    Usage example::

        client = Client("127.0.0.1:11211")
        await client.set("some_key", "Some value")
        items = await client.get("some_key")
        await client.end()

    Every command validates its arguments right away, raising
    ValidationError, and returns a future settled once the server
    replies. Commands are sent one at a time, in call order.

    Must be created with an event loop running: the connection is
    opened immediately, commands issued before it is ready are
    queued.
    """

    def __init__(
        self,
        location: Union[str, ServerAddress],
        options: Optional[ClientOptions] = None,
        metrics_collector: Optional[BaseMetricsCollector] = None,
        **option_overrides: Any,
    ) -> None:
        self.address = (
            location
            if isinstance(location, ServerAddress)
            else ServerAddress.from_location(location)
        )
        options = options or ClientOptions()
        if option_overrides:
            try:
                options = options._replace(**option_overrides)
            except ValueError as e:
                raise ValidationError(f"Invalid client options: {e}") from e
        _validate_options(options)
        self.options = options
        self.events = ClientEvents()
        self._return_type = options.return_type
        self._loop = asyncio.get_running_loop()
        self._connection = Connection(
            address=self.address,
            options=options,
            events=self.events,
            metrics_collector=metrics_collector,
            loop=self._loop,
        )
        self._connection.connect()

    def __str__(self) -> str:
        return f"<Client {self.address}>"

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.end()

    @property
    def destroyed(self) -> bool:
        return self._connection.destroyed

    @property
    def gave_up(self) -> bool:
        """
        Max retries were reached, the client won't reconnect anymore
        """
        return self._connection.gave_up

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def queue_size(self) -> int:
        return self._connection.queue_size

    def set_return_type(self, return_type: ReturnType) -> "Client":
        """
        Data of items fetched by the following commands will be
        returned as bytes or str.
        """
        self._return_type = return_type
        return self

    def return_bytes(self) -> "Client":
        return self.set_return_type(ReturnType.BYTES)

    def return_strings(self) -> "Client":
        return self.set_return_type(ReturnType.STR)

    # Storage commands

    def set(
        self,
        key: Key,
        value: Value,
        expiration: Expiration = 0,
        flags: int = 0,
    ) -> "asyncio.Future[None]":
        """Store the value"""
        return self._storage(Command.SET, key, value, expiration, flags)

    def add(
        self,
        key: Key,
        value: Value,
        expiration: Expiration = 0,
        flags: int = 0,
    ) -> "asyncio.Future[None]":
        """Store the value only if the server doesn't hold the key"""
        return self._storage(Command.ADD, key, value, expiration, flags)

    def replace(
        self,
        key: Key,
        value: Value,
        expiration: Expiration = 0,
        flags: int = 0,
    ) -> "asyncio.Future[None]":
        """Store the value only if the server already holds the key"""
        return self._storage(Command.REPLACE, key, value, expiration, flags)

    def cas(
        self,
        key: Key,
        value: Value,
        cas: Union[int, str],
        expiration: Expiration = 0,
        flags: int = 0,
    ) -> "asyncio.Future[None]":
        """
        Check and set: store the value only if nobody updated it since
        it was fetched with the given cas token (see `gets`).
        Fails with StoreError EXISTS if the item was modified, or
        NOT_FOUND if it is gone.
        """
        return self._storage(Command.CAS, key, value, expiration, flags, cas=cas)

    def append(self, key: Key, value: Value) -> "asyncio.Future[None]":
        return self._storage(Command.APPEND, key, value, 0, 0)

    def prepend(self, key: Key, value: Value) -> "asyncio.Future[None]":
        return self._storage(Command.PREPEND, key, value, 0, 0)

    # Retrieval commands

    def get(self, *keys: Key) -> "asyncio.Future[ReplyItems]":
        """
        Fetch one or more keys. Resolves to a dict with an Item for
        each key found, missing keys are not included.
        """
        return self._retrieval(Command.GET, keys)

    def gets(self, *keys: Key) -> "asyncio.Future[ReplyItems]":
        """Like get, items include their cas token"""
        return self._retrieval(Command.GETS, keys)

    def gat(self, expiration: Expiration, *keys: Key) -> "asyncio.Future[ReplyItems]":
        """Get and touch: fetch items, updating their expiration"""
        return self._retrieval(Command.GAT, keys, expiration)

    def gats(self, expiration: Expiration, *keys: Key) -> "asyncio.Future[ReplyItems]":
        return self._retrieval(Command.GATS, keys, expiration)

    # Other commands

    def delete(self, key: Key) -> "asyncio.Future[None]":
        self._check_usable()
        return self._command(Command.DELETE, build_delete_cmd(validate_key(key)))

    def incr(self, key: Key, delta: int = 1) -> "asyncio.Future[int]":
        """Resolves to the value after the increment"""
        return self._arithmetic(Command.INCR, key, delta)

    def decr(self, key: Key, delta: int = 1) -> "asyncio.Future[int]":
        """Resolves to the value after the decrement, it never goes below 0"""
        return self._arithmetic(Command.DECR, key, delta)

    def touch(self, key: Key, expiration: Expiration = 0) -> "asyncio.Future[None]":
        self._check_usable()
        return self._command(
            Command.TOUCH,
            build_touch_cmd(validate_key(key), normalize_expiration(expiration)),
        )

    def flush_all(self, delay: int = 0) -> "asyncio.Future[None]":
        """Invalidate every item in the server, after `delay` seconds"""
        self._check_usable()
        if isinstance(delay, bool) or not isinstance(delay, int) or delay < 0:
            raise ValidationError(f"Invalid flush_all delay {delay!r}")
        return self._command(Command.FLUSH_ALL, build_flush_all_cmd(delay))

    def flush_queue(self) -> "asyncio.Future[None]":
        """
        Resolves once every pending command has been settled.
        """
        return self._connection.wait_empty()

    async def end(self, flush: bool = False) -> None:
        """
        Closes the connection. Pending commands fail with
        ClientDestroyedError, unless flush is set: then it waits for
        them to finish first. The client can't be used afterwards.
        """
        if flush and not self.destroyed:
            await self.flush_queue()
        self._connection.destroy()

    def _check_usable(self) -> None:
        if self._connection.destroyed:
            raise ClientDestroyedError()
        if self._connection.gave_up:
            raise MaxRetriesError(f"Gave up connecting to {self.address}")

    def _storage(
        self,
        command: Command,
        key: Key,
        value: Value,
        expiration: Expiration,
        flags: int,
        cas: Optional[Union[int, str]] = None,
    ) -> "asyncio.Future[None]":
        self._check_usable()
        valid_key = validate_key(key)
        data = validate_value(value)
        validate_flags(flags, self.options.max_flag)
        cmd = build_storage_cmd(
            command,
            valid_key,
            flags,
            normalize_expiration(expiration),
            len(data),
            cas=validate_cas(cas) if cas is not None else None,
        )
        return self._command(command, cmd, data)

    def _retrieval(
        self,
        command: Command,
        keys: Tuple[Key, ...],
        expiration: Optional[Expiration] = None,
    ) -> "asyncio.Future[ReplyItems]":
        self._check_usable()
        if not keys:
            raise ValidationError(f"{command.value} requires at least one key")
        valid_keys = [validate_key(key) for key in keys]
        exptime = normalize_expiration(expiration) if expiration is not None else None
        return self._command(command, build_retrieval_cmd(command, valid_keys, exptime))

    def _arithmetic(
        self, command: Command, key: Key, delta: int
    ) -> "asyncio.Future[int]":
        self._check_usable()
        cmd = build_arithmetic_cmd(command, validate_key(key), validate_delta(delta))
        return self._command(command, cmd)

    def _command(
        self, command: Command, data: bytes, payload: Optional[bytes] = None
    ) -> "asyncio.Future[Any]":
        future: "asyncio.Future[Any]" = self._loop.create_future()
        self._connection.enqueue(
            PendingCommand(
                command,
                data,
                future,
                payload=payload,
                return_type=self._return_type,
            )
        )
        return future


def _validate_options(options: ClientOptions) -> None:
    if options.retries < 0:
        raise ValidationError(f"Invalid retries {options.retries}")
    if options.retry_delay < 0:
        raise ValidationError(f"Invalid retry_delay {options.retry_delay}")
    if options.connection_timeout is not None and options.connection_timeout <= 0:
        raise ValidationError(
            f"Invalid connection_timeout {options.connection_timeout}"
        )
    if options.idle_timeout is not None and options.idle_timeout <= 0:
        raise ValidationError(f"Invalid idle_timeout {options.idle_timeout}")

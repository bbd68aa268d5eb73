import asyncio
import logging
from enum import Enum
from typing import List, Optional

from ascii_memcache.configuration import (
    ClientOptions,
    ServerAddress,
    apply_socket_options,
)
from ascii_memcache.connection.parser import ResponseParser
from ascii_memcache.connection.queue import CommandQueue, PendingCommand
from ascii_memcache.connection.resolver import resolve_reply
from ascii_memcache.errors import (
    ClientDestroyedError,
    ConnectionLostError,
    ConnectionTimeoutError,
    IdleTimeoutError,
    MaxRetriesError,
    ProtocolError,
)
from ascii_memcache.events.event import ClientEvents
from ascii_memcache.metrics.base import (
    CLIENT_GAUGES,
    CLIENT_METRICS,
    BaseMetricsCollector,
)
from ascii_memcache.protocol import BlockReady, Item, ReturnType

_log: logging.Logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"
    DESTROYED = "destroyed"


class MemcacheProtocol(asyncio.Protocol):
    """
    Forwards the transport callbacks to the owning Connection. A new
    protocol instance is created on every (re)connection, so callbacks
    from a stale transport can be told apart and ignored.
    """

    def __init__(self, connection: "Connection") -> None:
        self._connection = connection
        self.transport: Optional[asyncio.Transport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def data_received(self, data: bytes) -> None:
        self._connection._on_data(self, data)

    def eof_received(self) -> bool:
        # Returning False closes the transport
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._connection._on_connection_lost(self, exc)


class Connection:
    """
    A single connection to a memcached server.

    Owns the socket, the response parser and the command queue, and
    drives the connection lifecycle:

        connecting -> ready -> closed -> connecting ...
        (any) -> destroyed

    Failed connection attempts are retried after `retry_delay` until
    `retries` consecutive attempts have failed, then it gives up and
    every pending command fails with MaxRetriesError. The counter is
    reset every time the connection is ready.

    When the socket is closed, the command in flight fails with
    ConnectionLostError, its reply can't arrive on a new socket.
    Commands not yet written stay queued and are sent once the
    connection is ready again. Nothing is ever written twice.
    """

    def __init__(
        self,
        address: ServerAddress,
        options: Optional[ClientOptions] = None,
        events: Optional[ClientEvents] = None,
        metrics_collector: Optional[BaseMetricsCollector] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.address = address
        self.options: ClientOptions = options or ClientOptions()
        self.events: ClientEvents = events or ClientEvents()
        self.state = ConnectionState.CONNECTING
        self._loop = loop or asyncio.get_running_loop()
        self._queue = CommandQueue()
        self._parser = ResponseParser()
        self._retries = 0
        self._gave_up = False
        self._protocol: Optional[MemcacheProtocol] = None
        self._transport: Optional[asyncio.Transport] = None
        self._close_error: Optional[Exception] = None
        self._connect_task: Optional["asyncio.Task[None]"] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        if metrics_collector:
            metrics_collector.init_metrics(
                namespace="client",
                metrics=CLIENT_METRICS,
                gauges=CLIENT_GAUGES,
            )
        self._metrics = metrics_collector

    def __str__(self) -> str:
        return f"<Connection {self.address} {self.state.value}>"

    @property
    def destroyed(self) -> bool:
        return self.state is ConnectionState.DESTROYED

    @property
    def gave_up(self) -> bool:
        return self._gave_up

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def connect(self, retrying: bool = False) -> None:
        self._retry_handle = None
        if self.destroyed:
            return
        self.state = ConnectionState.CONNECTING
        if retrying:
            self._metrics and self._metrics.metric_inc("reconnects")
            self.events.on_reconnect()
        else:
            self.events.on_connect()
        self._debug(f"Connecting to {self.address}")
        self._connect_task = self._loop.create_task(self._open_connection())

    async def _open_connection(self) -> None:
        protocol = MemcacheProtocol(self)
        try:
            await asyncio.wait_for(
                self._loop.create_connection(
                    lambda: protocol,
                    self.address.host,
                    self.address.port,
                ),
                timeout=self.options.connection_timeout,
            )
        except asyncio.CancelledError:
            # Destroyed once connected but before this task resumed
            if protocol.transport is not None:
                protocol.transport.close()
            raise
        except asyncio.TimeoutError:
            self._connect_task = None
            _log.warning(f"Timed out connecting to memcache {self.address}")
            self.events.on_connection_timeout()
            self._connection_failed(
                ConnectionTimeoutError(f"Timed out connecting to {self.address}")
            )
            return
        except OSError as e:
            self._connect_task = None
            _log.warning(f"Error connecting to memcache {self.address}: {e}")
            self._connection_failed(e)
            return

        self._connect_task = None
        self._connection_made(protocol)

    def _connection_made(self, protocol: MemcacheProtocol) -> None:
        transport = protocol.transport
        assert transport is not None  # noqa: S101
        if self.destroyed:
            transport.close()
            return
        if transport.is_closing():
            self._connection_failed(
                ConnectionLostError(f"Connection to {self.address} closed on connect")
            )
            return

        sock = transport.get_extra_info("socket")
        if sock is not None:
            try:
                apply_socket_options(sock, self.options)
            except OSError:
                _log.warning(
                    f"Error setting socket options for {self.address}",
                    exc_info=True,
                )

        self._protocol = protocol
        self._transport = transport
        self._parser.reset()
        self._retries = 0
        self.state = ConnectionState.READY
        self._reset_idle_timer()
        self._debug(f"Connected to {self.address}")
        self.events.on_ready()
        self._dispatch()

    def _connection_failed(self, error: Exception) -> None:
        if self.destroyed:
            return
        self.state = ConnectionState.CLOSED
        self._retries += 1
        self._metrics and self._metrics.metric_inc("connection_errors")
        self._schedule_reconnect()
        self.events.on_error(error)
        self.events.on_closed(error)

    def _schedule_reconnect(self) -> None:
        if self._retries >= self.options.retries:
            self._give_up()
            return
        self._debug(
            f"Reconnecting to {self.address} in {self.options.retry_delay}s "
            f"(failed attempts: {self._retries})"
        )
        self._retry_handle = self._loop.call_later(
            self.options.retry_delay, self.connect, True
        )

    def _give_up(self) -> None:
        self._gave_up = True
        error = MaxRetriesError(
            f"Max retries reached connecting to {self.address} "
            f"({self._retries} failed attempts)"
        )
        _log.error(str(error))
        self._queue.fail_all(error)
        self._update_queue_gauge()
        self.events.on_fatal(error)

    def _on_connection_lost(
        self, protocol: MemcacheProtocol, exc: Optional[Exception]
    ) -> None:
        if protocol is not self._protocol:
            return
        self._protocol = None
        self._transport = None
        self._cancel_idle_timer()
        error, self._close_error = self._close_error or exc, None
        if self.destroyed:
            return

        self.state = ConnectionState.CLOSED
        self._parser.reset()
        lost = ConnectionLostError(f"Connection to {self.address} closed")
        if error is not None:
            lost.__cause__ = error
        if self._queue.fail_in_flight(lost) is not None:
            self._record_reply("connection_lost")
        # User handlers run last, they may raise
        self._schedule_reconnect()

        if exc is not None:
            _log.warning(f"Connection to memcache {self.address} lost: {exc}")
            self._metrics and self._metrics.metric_inc("connection_errors")
            self.events.on_error(exc)
        self.events.on_closed(error)

    def _close_transport(self, error: Exception) -> None:
        """
        Drops the socket, the close is handled as an error close.
        """
        self._close_error = error
        self.state = ConnectionState.CLOSED
        if self._transport is not None:
            self._transport.abort()

    def _on_data(self, protocol: MemcacheProtocol, data: bytes) -> None:
        if protocol is not self._protocol or self.state is not ConnectionState.READY:
            return
        self._reset_idle_timer()
        self._parser.feed(data)
        try:
            for event in self._parser.events():
                if isinstance(event, BlockReady):
                    self._on_block(event)
                else:
                    self._on_reply(event.tokens)
                if self.state is not ConnectionState.READY:
                    break
        except ProtocolError as e:
            _log.warning(f"Error parsing response from {self.address}: {e}")
            if self._queue.fail_in_flight(e) is not None:
                self._record_reply("protocol_error")
            self._close_transport(e)
            self.events.on_error(e)

    def _on_block(self, block: BlockReady) -> None:
        command = self._queue.in_flight
        if command is None:
            _log.warning(f"Discarding value for {block.key!r}: no command in flight")
            return
        self._debug(f"Processing: value for {block.key!r}, {len(block.data)} bytes")
        data = (
            block.data.decode("utf-8", errors="replace")
            if command.return_type is ReturnType.STR
            else block.data
        )
        if command.reply_items is None:
            # Not a retrieval command, the terminating line rejects it
            command.reply_items = {}
        command.reply_items[block.key] = Item(
            data=data, flags=block.flags, cas=block.cas
        )

    def _on_reply(self, tokens: List[str]) -> None:
        command = self._queue.settle()
        if command is None:
            _log.warning(f"Discarding reply {tokens!r}: no command in flight")
            return
        self._debug(f"Processing: {' '.join(tokens)!r}")
        error = resolve_reply(command, tokens)
        self._record_reply("ok" if error is None else error.error_code or "empty")
        self._dispatch()

    def enqueue(self, command: PendingCommand) -> None:
        if self.destroyed:
            raise ClientDestroyedError()
        if self._gave_up:
            raise MaxRetriesError(f"Gave up connecting to {self.address}")
        self._queue.push(command)
        self._update_queue_gauge()
        self._dispatch()

    def _dispatch(self) -> None:
        if self.state is not ConnectionState.READY or self._transport is None:
            return
        command = self._queue.start_next()
        if command is None:
            return
        # Command, payload and terminator go out in a single write
        self._transport.write(command.to_bytes())
        self._reset_idle_timer()
        self._metrics and self._metrics.metric_inc("commands")
        if self.options.debug:
            self._debug(f"Wrote: {command.data!r}")
            if command.payload is not None:
                self._debug(f"Wrote: a block of {len(command.payload)} bytes")

    def wait_empty(self) -> "asyncio.Future[None]":
        return self._queue.wait_empty()

    def destroy(self) -> None:
        """
        Fails every pending command with ClientDestroyedError and
        closes the socket. The connection can not be used anymore.
        """
        if self.destroyed:
            return
        self.state = ConnectionState.DESTROYED
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None
        self._cancel_idle_timer()

        error = ClientDestroyedError()
        self._queue.fail_all(error)
        self._update_queue_gauge()
        transport, self._transport, self._protocol = self._transport, None, None
        if transport is not None:
            transport.close()
        self._parser.reset()
        self._debug(f"Destroyed connection to {self.address}")
        self.events.on_fatal(error)

    def _reset_idle_timer(self) -> None:
        if self.options.idle_timeout is None:
            return
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        self._idle_handle = self._loop.call_later(
            self.options.idle_timeout, self._on_idle_timeout
        )

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        if self.state is not ConnectionState.READY:
            return
        self._debug(f"Idle timeout on connection to {self.address}")
        self.events.on_timeout()
        self._close_transport(
            IdleTimeoutError(f"No traffic in {self.options.idle_timeout}s")
        )

    def _record_reply(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.metric_inc("replies", labels={"outcome": outcome})
            self._update_queue_gauge()

    def _update_queue_gauge(self) -> None:
        self._metrics and self._metrics.gauge_set("queue_size", len(self._queue))

    def _debug(self, message: str) -> None:
        debug = self.options.debug
        if not debug:
            return
        _log.debug(message)
        self.events.on_debug(message)
        if callable(debug):
            debug(message)

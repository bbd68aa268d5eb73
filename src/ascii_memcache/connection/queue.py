import asyncio
from collections import deque
from typing import Any, Deque, List, Optional

from ascii_memcache.protocol import (
    ENDL,
    RETRIEVAL_COMMANDS,
    Command,
    ReplyItems,
    ReturnType,
)


class PendingCommand:
    """
    A command waiting for its reply. The future is settled once the
    whole reply has been parsed.
    """

    __slots__ = ("command", "data", "payload", "future", "reply_items", "return_type")

    def __init__(
        self,
        command: Command,
        data: bytes,
        future: "asyncio.Future[Any]",
        payload: Optional[bytes] = None,
        return_type: ReturnType = ReturnType.BYTES,
    ) -> None:
        self.command = command
        self.data = data
        self.payload = payload
        self.future = future
        self.return_type = return_type
        self.reply_items: Optional[ReplyItems] = (
            {} if command in RETRIEVAL_COMMANDS else None
        )

    @property
    def name(self) -> str:
        return self.command.value

    def to_bytes(self) -> bytes:
        if self.payload is not None:
            return self.data + self.payload + ENDL
        return self.data

    def resolve(self, value: Any = None) -> None:
        # The caller may have cancelled the future, the reply is
        # consumed anyway to keep the stream in order.
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)

    def __repr__(self) -> str:
        return f"<PendingCommand {self.data!r}>"


class CommandQueue:
    """
    FIFO of pending commands with at most one command in flight.

    The protocol has no request ids, replies are matched to commands
    only by order, so a command is only started once the previous
    one has been fully settled.
    """

    def __init__(self) -> None:
        self._waiting: Deque[PendingCommand] = deque()
        self._in_flight: Optional[PendingCommand] = None
        self._empty_waiters: List["asyncio.Future[None]"] = []

    def __len__(self) -> int:
        return len(self._waiting) + (1 if self._in_flight is not None else 0)

    @property
    def in_flight(self) -> Optional[PendingCommand]:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return len(self._waiting)

    def push(self, command: PendingCommand) -> None:
        self._waiting.append(command)

    def start_next(self) -> Optional[PendingCommand]:
        """
        Moves the head of the queue in flight and returns it. Returns
        None if a command is already in flight or nothing is waiting.
        """
        if self._in_flight is not None or not self._waiting:
            return None
        self._in_flight = self._waiting.popleft()
        return self._in_flight

    def settle(self) -> Optional[PendingCommand]:
        """
        Removes and returns the command in flight, the caller is
        responsible for resolving or rejecting it.
        """
        command, self._in_flight = self._in_flight, None
        self._notify_if_empty()
        return command

    def fail_in_flight(self, error: BaseException) -> Optional[PendingCommand]:
        command = self.settle()
        if command is not None:
            command.reject(error)
        return command

    def fail_all(self, error: BaseException) -> int:
        """
        Rejects every command, in flight and waiting, in queue order.
        """
        failed = 0
        if self.fail_in_flight(error) is not None:
            failed += 1
        while self._waiting:
            self._waiting.popleft().reject(error)
            failed += 1
        self._notify_if_empty()
        return failed

    def wait_empty(self) -> "asyncio.Future[None]":
        future: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        if len(self) == 0:
            future.set_result(None)
        else:
            self._empty_waiters.append(future)
        return future

    def _notify_if_empty(self) -> None:
        if len(self) != 0:
            return
        waiters, self._empty_waiters = self._empty_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

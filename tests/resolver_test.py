import asyncio
from typing import List, Type

import pytest

from ascii_memcache.connection.queue import PendingCommand
from ascii_memcache.connection.resolver import resolve_reply
from ascii_memcache.errors import (
    ClientOrServerError,
    CommandError,
    InvalidCommandError,
    StoreError,
    UnexpectedResponseError,
)
from ascii_memcache.protocol import Command, Item


def pending(command: Command) -> PendingCommand:
    return PendingCommand(
        command,
        f"{command.value} k\r\n".encode(),
        asyncio.get_running_loop().create_future(),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command, tokens, result",
    [
        (Command.SET, ["STORED"], None),
        (Command.TOUCH, ["TOUCHED"], None),
        (Command.DELETE, ["DELETED"], None),
        (Command.FLUSH_ALL, ["OK"], None),
        (Command.INCR, ["5"], 5),
        (Command.DECR, ["0"], 0),
        (Command.GET, ["END"], {}),
    ],
)
async def test_success(command: Command, tokens: List[str], result: object) -> None:
    cmd = pending(command)
    assert resolve_reply(cmd, tokens) is None
    assert cmd.future.result() == result


@pytest.mark.asyncio
async def test_end_resolves_collected_items() -> None:
    cmd = pending(Command.GETS)
    assert cmd.reply_items is not None
    cmd.reply_items["k"] = Item(b"v", 3, "10")
    resolve_reply(cmd, ["END"])
    assert cmd.future.result() == {"k": Item(b"v", 3, "10")}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command, tokens, error_type, error_code",
    [
        (Command.CAS, ["EXISTS"], StoreError, "EXISTS"),
        (Command.ADD, ["NOT_STORED"], StoreError, "NOT_STORED"),
        (Command.DELETE, ["NOT_FOUND"], StoreError, "NOT_FOUND"),
        (Command.SET, ["ERROR"], InvalidCommandError, "ERROR"),
        (Command.INCR, ["CLIENT_ERROR", "bad"], ClientOrServerError, "CLIENT_ERROR"),
        (Command.SET, ["SERVER_ERROR", "oom"], ClientOrServerError, "SERVER_ERROR"),
        (Command.SET, ["OK"], UnexpectedResponseError, "OK"),
        (Command.SET, ["END"], UnexpectedResponseError, "END"),
        (Command.SET, ["5"], UnexpectedResponseError, "5"),
        (Command.INCR, ["٣"], UnexpectedResponseError, "٣"),
        (Command.INCR, ["5", "6"], UnexpectedResponseError, "5"),
        (Command.GET, ["WHAT"], UnexpectedResponseError, "WHAT"),
        (Command.GET, [], UnexpectedResponseError, ""),
    ],
)
async def test_errors(
    command: Command,
    tokens: List[str],
    error_type: Type[CommandError],
    error_code: str,
) -> None:
    cmd = pending(command)
    error = resolve_reply(cmd, tokens)
    assert isinstance(error, error_type)
    assert error.error_code == error_code
    assert error.command == command.value
    assert error.sent_data == cmd.data
    assert cmd.future.exception() is error


@pytest.mark.asyncio
async def test_error_messages() -> None:
    cmd = pending(Command.INCR)
    error = resolve_reply(
        cmd,
        "CLIENT_ERROR cannot increment or decrement non-numeric value".split(),
    )
    assert isinstance(error, ClientOrServerError)
    assert error.server_message == "cannot increment or decrement non-numeric value"
    assert str(error) == "cannot increment or decrement non-numeric value"

    error = resolve_reply(pending(Command.SET), ["ERROR"])
    assert str(error) == "Invalid command."

    error = resolve_reply(pending(Command.SET), ["OK"])
    assert isinstance(error, UnexpectedResponseError)
    assert error.reply == "OK"

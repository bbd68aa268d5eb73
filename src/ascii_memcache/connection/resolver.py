import logging
from typing import List, Optional

from ascii_memcache.connection.queue import PendingCommand
from ascii_memcache.errors import (
    ClientOrServerError,
    CommandError,
    InvalidCommandError,
    StoreError,
    UnexpectedResponseError,
)
from ascii_memcache.protocol import (
    ARITHMETIC_COMMANDS,
    CLIENT_ERROR,
    DELETED,
    END,
    ERROR,
    EXISTS,
    NOT_FOUND,
    NOT_STORED,
    OK,
    RETRIEVAL_COMMANDS,
    SERVER_ERROR,
    STORED,
    TOUCHED,
    Command,
)

_log: logging.Logger = logging.getLogger(__name__)

_SUCCESS = frozenset((STORED, TOUCHED, DELETED))
_STORE_FAILURES = frozenset((EXISTS, NOT_STORED, NOT_FOUND))


def resolve_reply(command: PendingCommand, tokens: List[str]) -> Optional[CommandError]:
    """
    Settles the command in flight with a reply line.

    Returns the error the command was rejected with, if any, so the
    caller can account for it. Value blocks never get here, they are
    collected in the command reply items until END.
    """
    error = _reply_error(command, tokens)
    if error is None:
        reply = tokens[0]
        if reply == END:
            command.resolve(command.reply_items)
        elif reply in _SUCCESS or reply == OK:
            command.resolve(None)
        else:
            command.resolve(int(reply))
    else:
        command.reject(error)
    return error


def _reply_error(  # noqa: C901
    command: PendingCommand, tokens: List[str]
) -> Optional[CommandError]:
    if not tokens:
        return UnexpectedResponseError(command.name, command.data, "", "")

    reply = tokens[0]
    message = " ".join(tokens[1:])
    if reply == END:
        if command.command in RETRIEVAL_COMMANDS:
            return None
    elif reply in _SUCCESS:
        return None
    elif reply in _STORE_FAILURES:
        return StoreError(command.name, command.data, reply)
    elif reply == OK:
        if command.command == Command.FLUSH_ALL:
            return None
    elif reply == ERROR:
        _log.warning(f"Server did not recognize command {command.data!r}")
        return InvalidCommandError(command.name, command.data, reply)
    elif reply in (CLIENT_ERROR, SERVER_ERROR):
        _log.warning(f"{reply} for command {command.data!r}: {message}")
        return ClientOrServerError(command.name, command.data, reply, message)
    elif reply.isascii() and reply.isdigit() and len(tokens) == 1:
        if command.command in ARITHMETIC_COMMANDS:
            return None

    _log.warning(f"Unexpected response {tokens!r} for command {command.data!r}")
    return UnexpectedResponseError(command.name, command.data, reply, " ".join(tokens))

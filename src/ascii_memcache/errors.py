from typing import Optional


class MemcacheError(Exception):
    pass


class ValidationError(MemcacheError, ValueError):
    pass


class ClientDestroyedError(MemcacheError):
    def __init__(self, message: str = "Client is already destroyed.") -> None:
        super().__init__(message)


class MaxRetriesError(MemcacheError):
    def __init__(self, message: str = "Max retry reached.") -> None:
        super().__init__(message)


class ConnectionLostError(MemcacheError):
    pass


class ConnectionTimeoutError(MemcacheError):
    pass


class IdleTimeoutError(MemcacheError):
    pass


class ProtocolError(MemcacheError):
    """
    The server stream could not be parsed. The connection is
    out of sync and must be discarded.
    """


class CommandError(MemcacheError):
    """
    Base class for errors the server reports for one command.
    Only the future of that command is affected.
    """

    def __init__(
        self,
        command: str,
        sent_data: bytes,
        error_code: str,
        message: Optional[str] = None,
    ) -> None:
        self.command = command
        self.sent_data = sent_data
        self.error_code = error_code
        super().__init__(message or error_code)


class StoreError(CommandError):
    """EXISTS, NOT_STORED or NOT_FOUND"""


class InvalidCommandError(CommandError):
    def __init__(self, command: str, sent_data: bytes, error_code: str) -> None:
        super().__init__(command, sent_data, error_code, "Invalid command.")


class ClientOrServerError(CommandError):
    def __init__(
        self, command: str, sent_data: bytes, error_code: str, server_message: str
    ) -> None:
        self.server_message = server_message
        super().__init__(
            command, sent_data, error_code, server_message or error_code
        )


class UnexpectedResponseError(CommandError):
    def __init__(
        self, command: str, sent_data: bytes, error_code: str, reply: str
    ) -> None:
        self.reply = reply
        super().__init__(
            command, sent_data, error_code, f"Unexpected response: {reply!r}"
        )

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union

ENDL = b"\r\n"
ENDL_LEN = 2
SPACE = b" "

# Reply tokens
VALUE = "VALUE"
END = "END"
STORED = "STORED"
TOUCHED = "TOUCHED"
DELETED = "DELETED"
EXISTS = "EXISTS"
NOT_STORED = "NOT_STORED"
NOT_FOUND = "NOT_FOUND"
OK = "OK"
ERROR = "ERROR"
CLIENT_ERROR = "CLIENT_ERROR"
SERVER_ERROR = "SERVER_ERROR"


class Command(Enum):
    SET = "set"
    ADD = "add"
    REPLACE = "replace"
    CAS = "cas"
    APPEND = "append"
    PREPEND = "prepend"
    GET = "get"
    GETS = "gets"
    GAT = "gat"
    GATS = "gats"
    DELETE = "delete"
    INCR = "incr"
    DECR = "decr"
    TOUCH = "touch"
    FLUSH_ALL = "flush_all"


RETRIEVAL_COMMANDS: FrozenSet[Command] = frozenset(
    (Command.GET, Command.GETS, Command.GAT, Command.GATS)
)
ARITHMETIC_COMMANDS: FrozenSet[Command] = frozenset((Command.INCR, Command.DECR))


class ReturnType(Enum):
    BYTES = "bytes"
    STR = "str"


@dataclass
class Item:
    __slots__ = ("data", "flags", "cas")
    data: Union[bytes, str]
    flags: int
    cas: Optional[str]

    def __init__(
        self,
        data: Union[bytes, str],
        flags: int = 0,
        cas: Optional[str] = None,
    ) -> None:
        self.data = data
        self.flags = flags
        self.cas = cas


ReplyItems = Dict[str, Item]


@dataclass
class BlockState:
    """
    Header of a value whose data block is still being received.
    """

    __slots__ = ("key", "flags", "size", "cas")
    key: str
    flags: int
    size: int
    cas: Optional[str]


@dataclass
class ControlLine:
    __slots__ = ("tokens",)
    tokens: List[str]


@dataclass
class BlockReady:
    __slots__ = ("key", "flags", "cas", "data")
    key: str
    flags: int
    cas: Optional[str]
    data: bytes


ParserEvent = Union[ControlLine, BlockReady]

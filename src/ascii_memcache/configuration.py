import re
import socket
from typing import Callable, NamedTuple, Optional, Sequence, Tuple, Union

from ascii_memcache.errors import ValidationError
from ascii_memcache.protocol import ReturnType
from ascii_memcache.settings import (
    DEFAULT_CONNECTION_TIMEOUT_S,
    DEFAULT_IDLE_TIMEOUT_S,
    DEFAULT_LEGACY_FLAGS,
    DEFAULT_PORT,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY_S,
    MAX_FLAG,
    MAX_LEGACY_FLAG,
)

_LOCATION_RE = re.compile(
    r"^(?:\[(?P<ipv6>[^\s\[\]]+)\]|(?P<host>[^\s:\[\]]+))(?::(?P<port>\d+))?$"
)

DebugSink = Union[bool, Callable[[str], None]]
SocketOption = Tuple[int, int, int]


class ServerAddress(NamedTuple):
    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        else:
            return f"{self.host}:{self.port}"

    @classmethod
    def from_location(cls, location: str) -> "ServerAddress":
        """
        Parses `host:port`, or `[ipv6]:port`. The port defaults to 11211.
        """
        if not isinstance(location, str):
            raise ValidationError(f"Invalid server location {location!r}")
        match = _LOCATION_RE.match(location.strip())
        if match is None:
            raise ValidationError(f"Invalid server location {location!r}")
        port = int(match.group("port") or DEFAULT_PORT)
        if not 0 < port < 65536:
            raise ValidationError(f"Invalid server port in {location!r}")
        return cls(host=match.group("ipv6") or match.group("host"), port=port)


class ClientOptions(NamedTuple):
    """
    Construction parameters of a client connection.

    * retries: consecutive failed connection attempts before giving up.
    * retry_delay: seconds to wait before reconnecting.
    * connection_timeout: seconds allowed to establish the connection.
    * idle_timeout: close the socket after this many seconds without
      traffic. None disables it.
    * no_delay / keep_alive / socket_options: socket tuning, the raw
      options are (level, option, value) triples for setsockopt.
    * legacy_flags: cap client flags at 16 bits for older servers,
      24 bits otherwise.
    * debug: trace writes and replies. Can be a callable receiving
      each trace message.
    * return_type: return item data as bytes or decoded str.
    """

    retries: int = DEFAULT_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY_S
    connection_timeout: Optional[float] = DEFAULT_CONNECTION_TIMEOUT_S
    idle_timeout: Optional[float] = DEFAULT_IDLE_TIMEOUT_S
    no_delay: bool = True
    keep_alive: bool = False
    socket_options: Sequence[SocketOption] = ()
    legacy_flags: bool = DEFAULT_LEGACY_FLAGS
    debug: DebugSink = False
    return_type: ReturnType = ReturnType.BYTES

    @property
    def max_flag(self) -> int:
        return MAX_LEGACY_FLAG if self.legacy_flags else MAX_FLAG


def apply_socket_options(sock: socket.socket, options: ClientOptions) -> None:
    if options.no_delay:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    if options.keep_alive:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    for level, option, value in options.socket_options:
        sock.setsockopt(level, option, value)

from typing import Iterator, List, Optional

from ascii_memcache.errors import ProtocolError
from ascii_memcache.protocol import (
    ENDL,
    ENDL_LEN,
    VALUE,
    BlockReady,
    BlockState,
    ControlLine,
    ParserEvent,
)


class ResponseParser:
    """
    Incremental parser of the memcached text protocol responses.

    Bytes are appended with feed() as they come from the socket, in
    chunks of any size, and events() yields every complete reply
    found in the buffer:
    - ControlLine for each reply line (tokens split on spaces)
    - BlockReady for each value block, once the whole announced
      data and its terminator have been received.

    VALUE headers never surface as ControlLine: they switch the
    parser to block mode. In block mode the announced size is the
    only boundary, the data is never scanned for \\r\\n since values
    can contain it.

    Consumed bytes are dropped from the buffer right away, so the
    buffer only ever holds the unparsed tail of the stream.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._block: Optional[BlockState] = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def expecting_block(self) -> bool:
        return self._block is not None

    def reset(self) -> None:
        self._buffer = bytearray()
        self._block = None

    def feed(self, data: bytes) -> None:
        self._buffer += data

    def events(self) -> Iterator[ParserEvent]:
        """
        Yields events until the buffered data is exhausted.
        Raises ProtocolError if the stream is malformed.
        """
        while True:
            event = self._next_event()
            if event is None:
                return
            yield event

    def _next_event(self) -> Optional[ParserEvent]:
        while True:
            if self._block is not None:
                return self._read_block()

            pos = self._buffer.find(ENDL)
            if pos < 0:
                return None
            line = bytes(self._buffer[:pos])
            del self._buffer[: pos + ENDL_LEN]

            tokens = line.decode("utf-8", errors="replace").split()
            if tokens and tokens[0] == VALUE:
                self._block = self._parse_value_header(tokens, line)
                # Loop to read the block from what is already buffered
                continue
            return ControlLine(tokens=tokens)

    def _read_block(self) -> Optional[BlockReady]:
        block = self._block
        assert block is not None  # noqa: S101
        message_size = block.size + ENDL_LEN
        if len(self._buffer) < message_size:
            return None

        data = bytes(self._buffer[: block.size])
        endl = bytes(self._buffer[block.size : message_size])
        if endl != ENDL:
            raise ProtocolError(
                f"Error parsing value: Expected {block.size} bytes, "
                f"terminated in \\r\\n, got: {data + endl!r}"
            )
        del self._buffer[:message_size]
        self._block = None
        return BlockReady(key=block.key, flags=block.flags, cas=block.cas, data=data)

    @staticmethod
    def _parse_value_header(tokens: List[str], line: bytes) -> BlockState:
        # VALUE <key> <flags> <bytes> [<cas unique>]
        if len(tokens) not in (4, 5):
            raise ProtocolError(f"Invalid value header {line!r}")
        try:
            flags = int(tokens[2])
            size = int(tokens[3])
        except ValueError as e:
            raise ProtocolError(f"Invalid value header {line!r}") from e
        if size < 0 or flags < 0:
            raise ProtocolError(f"Invalid value header {line!r}")
        cas = tokens[4] if len(tokens) == 5 else None
        return BlockState(key=tokens[1], flags=flags, size=size, cas=cas)

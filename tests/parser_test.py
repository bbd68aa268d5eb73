from typing import List

import pytest

from ascii_memcache.connection.parser import ResponseParser
from ascii_memcache.errors import ProtocolError
from ascii_memcache.protocol import BlockReady, ControlLine, ParserEvent


def feed_all(parser: ResponseParser, *chunks: bytes) -> List[ParserEvent]:
    events: List[ParserEvent] = []
    for chunk in chunks:
        parser.feed(chunk)
        events.extend(parser.events())
    return events


def test_control_lines() -> None:
    parser = ResponseParser()
    events = feed_all(parser, b"STORED\r\nNOT_FOUND\r\nCLIENT_ERROR bad data chunk\r\n")
    assert events == [
        ControlLine(tokens=["STORED"]),
        ControlLine(tokens=["NOT_FOUND"]),
        ControlLine(tokens=["CLIENT_ERROR", "bad", "data", "chunk"]),
    ]
    assert parser.buffered == 0


def test_incomplete_line_is_kept() -> None:
    parser = ResponseParser()
    assert feed_all(parser, b"STOR", b"ED\r") == []
    assert parser.buffered == 7
    assert feed_all(parser, b"\n") == [ControlLine(tokens=["STORED"])]
    assert parser.buffered == 0


def test_value_block() -> None:
    parser = ResponseParser()
    events = feed_all(parser, b"VALUE foo 12 3 99\r\nbar\r\nEND\r\n")
    assert events == [
        BlockReady(key="foo", flags=12, cas="99", data=b"bar"),
        ControlLine(tokens=["END"]),
    ]


def test_value_block_byte_by_byte() -> None:
    stream = b"VALUE a 0 2\r\nxy\r\nVALUE b 1 0\r\n\r\nEND\r\n"
    parser = ResponseParser()
    events = feed_all(parser, *(stream[i : i + 1] for i in range(len(stream))))
    assert events == [
        BlockReady(key="a", flags=0, cas=None, data=b"xy"),
        BlockReady(key="b", flags=1, cas=None, data=b""),
        ControlLine(tokens=["END"]),
    ]


def test_waits_for_block_terminator() -> None:
    parser = ResponseParser()
    assert feed_all(parser, b"VALUE a 0 3\r\nabc") == []
    assert parser.expecting_block
    assert feed_all(parser, b"\r") == []
    assert feed_all(parser, b"\nEND\r\n") == [
        BlockReady(key="a", flags=0, cas=None, data=b"abc"),
        ControlLine(tokens=["END"]),
    ]
    assert not parser.expecting_block


def test_value_containing_line_terminators() -> None:
    parser = ResponseParser()
    events = feed_all(parser, b"VALUE k 0 10\r\nEND\r\nEND\r\n\r\nEND\r\n")
    assert events == [
        BlockReady(key="k", flags=0, cas=None, data=b"END\r\nEND\r\n"),
        ControlLine(tokens=["END"]),
    ]


def test_many_replies_in_one_chunk() -> None:
    parser = ResponseParser()
    events = feed_all(
        parser,
        b"STORED\r\nVALUE k 0 1\r\nv\r\nEND\r\nDELETED\r\n42\r\n",
    )
    assert [type(e) for e in events] == [
        ControlLine,
        BlockReady,
        ControlLine,
        ControlLine,
        ControlLine,
    ]
    assert events[-1] == ControlLine(tokens=["42"])


def test_bad_block_terminator() -> None:
    parser = ResponseParser()
    parser.feed(b"VALUE k 0 2\r\nabc\r\n")
    with pytest.raises(ProtocolError, match="Error parsing value"):
        list(parser.events())


@pytest.mark.parametrize(
    "header",
    [
        b"VALUE k 0\r\n",
        b"VALUE k x 1\r\n",
        b"VALUE k 0 -1\r\n",
        b"VALUE k 0 1 2 3\r\n",
    ],
)
def test_bad_value_header(header: bytes) -> None:
    parser = ResponseParser()
    parser.feed(header)
    with pytest.raises(ProtocolError, match="Invalid value header"):
        list(parser.events())


def test_empty_line() -> None:
    parser = ResponseParser()
    assert feed_all(parser, b"\r\n") == [ControlLine(tokens=[])]


def test_reset() -> None:
    parser = ResponseParser()
    feed_all(parser, b"VALUE k 0 5\r\nab")
    assert parser.expecting_block
    parser.reset()
    assert not parser.expecting_block
    assert parser.buffered == 0
    assert feed_all(parser, b"END\r\n") == [ControlLine(tokens=["END"])]

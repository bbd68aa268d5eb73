from ascii_memcache.commands.builders import (
    build_arithmetic_cmd,
    build_delete_cmd,
    build_flush_all_cmd,
    build_retrieval_cmd,
    build_storage_cmd,
    build_touch_cmd,
)
from ascii_memcache.protocol import Command


def test_storage_cmd() -> None:
    assert build_storage_cmd(Command.SET, "k", 0, 0, 1) == b"set k 0 0 1\r\n"
    assert build_storage_cmd(Command.ADD, "k", 7, 60, 10) == b"add k 7 60 10\r\n"
    assert (
        build_storage_cmd(Command.CAS, "k", 1, 0, 3, cas="999")
        == b"cas k 1 0 3 999\r\n"
    )


def test_retrieval_cmd() -> None:
    assert build_retrieval_cmd(Command.GET, ["a"]) == b"get a\r\n"
    assert build_retrieval_cmd(Command.GETS, ["a", "b"]) == b"gets a b\r\n"
    assert build_retrieval_cmd(Command.GAT, ["a", "b"], 30) == b"gat 30 a b\r\n"
    assert build_retrieval_cmd(Command.GATS, ["a"], 0) == b"gats 0 a\r\n"


def test_other_cmds() -> None:
    assert build_delete_cmd("k") == b"delete k\r\n"
    assert build_arithmetic_cmd(Command.INCR, "k", 5) == b"incr k 5\r\n"
    assert build_arithmetic_cmd(Command.DECR, "k", 1) == b"decr k 1\r\n"
    assert build_touch_cmd("k", 100) == b"touch k 100\r\n"
    assert build_flush_all_cmd() == b"flush_all 0\r\n"
    assert build_flush_all_cmd(10) == b"flush_all 10\r\n"

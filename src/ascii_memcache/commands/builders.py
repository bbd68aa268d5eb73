from typing import Iterable, Optional

from ascii_memcache.protocol import ENDL, SPACE, Command


def _join(*parts: str) -> bytes:
    return SPACE.join(part.encode("ascii") for part in parts) + ENDL


def build_storage_cmd(
    command: Command,
    key: str,
    flags: int,
    exptime: int,
    size: int,
    cas: Optional[str] = None,
) -> bytes:
    # <cmd> <key> <flags> <exptime> <bytes> [<cas unique>]\r\n
    parts = [command.value, key, str(flags), str(exptime), str(size)]
    if cas is not None:
        parts.append(cas)
    return _join(*parts)


def build_retrieval_cmd(
    command: Command,
    keys: Iterable[str],
    exptime: Optional[int] = None,
) -> bytes:
    # get|gets <key>*\r\n
    # gat|gats <exptime> <key>*\r\n
    if exptime is not None:
        return _join(command.value, str(exptime), *keys)
    return _join(command.value, *keys)


def build_delete_cmd(key: str) -> bytes:
    return _join(Command.DELETE.value, key)


def build_arithmetic_cmd(command: Command, key: str, delta: int) -> bytes:
    return _join(command.value, key, str(delta))


def build_touch_cmd(key: str, exptime: int) -> bytes:
    return _join(Command.TOUCH.value, key, str(exptime))


def build_flush_all_cmd(delay: int = 0) -> bytes:
    return _join(Command.FLUSH_ALL.value, str(delay))

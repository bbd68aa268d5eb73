import time
from datetime import datetime, timedelta
from typing import Union

from ascii_memcache.errors import ValidationError
from ascii_memcache.settings import MAX_DELTA, MAX_KEY_SIZE, MAX_RELATIVE_EXPIRATION

Expiration = Union[int, float, datetime, timedelta]
Value = Union[bytes, bytearray, memoryview, str]

# Printable ascii, no spaces nor control chars
_MIN_KEY_CHAR = 0x21
_MAX_KEY_CHAR = 0x7E


def validate_key(key: Union[str, bytes]) -> str:
    """
    Keys are 1-250 printable ascii characters without spaces.
    Returns the key as str, ready to be put on the wire.
    """
    if isinstance(key, bytes):
        raw = key
    elif isinstance(key, str):
        try:
            raw = key.encode("ascii")
        except UnicodeEncodeError:
            raise ValidationError(f"Invalid key {key!r}: must be ascii") from None
    else:
        raise ValidationError(f"Invalid key {key!r}: must be str or bytes")

    if not 0 < len(raw) <= MAX_KEY_SIZE:
        raise ValidationError(
            f"Invalid key {key!r}: length must be between 1 and {MAX_KEY_SIZE}"
        )
    for char in raw:
        if char < _MIN_KEY_CHAR or char > _MAX_KEY_CHAR:
            raise ValidationError(
                f"Invalid key {key!r}: must not include control characters or spaces"
            )
    return raw.decode("ascii")


def validate_value(value: Value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ValidationError(f"Invalid value type {type(value).__name__}")


def validate_flags(flags: int, max_flag: int) -> int:
    if isinstance(flags, bool) or not isinstance(flags, int):
        raise ValidationError(f"Invalid flags {flags!r}: must be an int")
    if not 0 <= flags <= max_flag:
        raise ValidationError(
            f"Invalid flags {flags}: must be between 0 and {max_flag}"
        )
    return flags


def validate_delta(delta: int) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError(f"Invalid delta {delta!r}: must be an int")
    if not 0 < delta <= MAX_DELTA:
        raise ValidationError(f"Invalid delta {delta}: must be strictly positive")
    return delta


def validate_cas(cas: Union[int, str]) -> str:
    token = str(cas) if isinstance(cas, int) and not isinstance(cas, bool) else cas
    if not isinstance(token, str) or not token.isdigit() or not token.isascii():
        raise ValidationError(f"Invalid cas token {cas!r}")
    return token


def normalize_expiration(expiration: Expiration) -> int:
    """
    Converts an expiration to what memcached expects: seconds from
    now when <= 30 days, else an absolute unix timestamp.

    * datetime: absolute timestamp
    * timedelta: relative seconds, or absolute timestamp if it is
      longer than 30 days
    * int / float: passed as is (rounded), the server interprets it
    """
    if isinstance(expiration, datetime):
        return int(round(expiration.timestamp()))
    if isinstance(expiration, timedelta):
        seconds = int(round(expiration.total_seconds()))
        if seconds > MAX_RELATIVE_EXPIRATION:
            return int(time.time()) + seconds
        return seconds
    if isinstance(expiration, bool) or not isinstance(expiration, (int, float)):
        raise ValidationError(f"Invalid expiration {expiration!r}")
    return int(round(expiration))

"""Path, random-string and size helpers used by the cache store."""

from __future__ import annotations

import json
import os
import random
import re
import secrets

_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"
_DIGITS = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1
_UNITS = {
    "B": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
}


class InvalidSizeSuffixError(ValueError):
    """Raised when a size string does not end in a known unit."""


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _require_length(name: str, value: str) -> None:
    if len(value) < 3:
        raise ValueError(f"{name}={_quote(value)} is less than 3 characters long")


def nar_info_file_path(hash: str) -> str:
    """Return the sharded path of the narinfo file for ``hash``."""
    _require_length("hash", hash)
    return file_path_with_sharding(hash + ".narinfo")


def nar_file_path(hash: str, compression: str = "") -> str:
    """Return the sharded path of the nar file for ``hash`` and an optional compression."""
    _require_length("hash", hash)
    name = hash + ".nar"
    if compression:
        name += "." + compression
    return file_path_with_sharding(name)


def file_path_with_sharding(fn: str) -> str:
    """Return ``fn`` placed under two levels of prefix directories."""
    _require_length("fn", fn)
    return os.path.join(fn[:1], fn[:2], fn)


def rand_string(n: int, rng: random.Random | None = None) -> str:
    """Return a random string of ``n`` lower-case letters and digits.

    ``rng`` defaults to a cryptographically secure generator.
    """
    if n < 0:
        raise ValueError(f"length must not be negative, got {n}")
    source = rng if rng is not None else secrets.SystemRandom()
    return "".join(source.choice(_CHARS) for _ in range(n))


def parse_size(value: str) -> int:
    """Parse a size such as ``"10G"`` and return it in bytes."""
    if not value:
        raise ValueError("size must not be empty")

    number, suffix = value[:-1], value[-1:].upper()
    if not _DIGITS.fullmatch(number):
        raise ValueError(f"parsing {_quote(number)}: invalid syntax")

    amount = int(number)
    if amount > _UINT64_MAX:
        raise ValueError(f"parsing {_quote(number)}: value out of range")

    try:
        multiplier = _UNITS[suffix]
    except KeyError:
        raise InvalidSizeSuffixError(
            f"error parsing the unit for {_quote(value)}: invalid size suffix"
        ) from None

    return amount * multiplier


def nar_info_url_path(hash: str) -> str:
    """Return the URL path of the narinfo for ``hash``."""
    return "/" + hash + ".narinfo"
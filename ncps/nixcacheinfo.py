"""Parser for the nix-cache-info document."""

from __future__ import annotations

import io
import json
import re
from collections.abc import Iterable
from dataclasses import dataclass

_DIGITS = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1


class UnknownKeyError(ValueError):
    """Raised when the nix-cache-info holds a key that is not known."""


class SplitOnceError(ValueError):
    """Raised when a string does not split exactly once on a separator."""


@dataclass
class NixCacheInfo:
    """The fields of a nix-cache-info document."""

    store_dir: str = ""
    want_mass_query: int = 0
    priority: int = 0


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _parse_uint(value: str) -> int:
    if not _DIGITS.fullmatch(value) or int(value) > _UINT64_MAX:
        raise ValueError(f"error parsing {_quote(value)} as uint64")
    return int(value)


def split_once(s: str, sep: str) -> tuple[str, str]:
    """Split ``s`` on ``sep``, requiring exactly one occurrence."""
    idx = s.find(sep)
    if idx == -1:
        raise SplitOnceError(
            f"found no separators in the string: separator={_quote(sep)} string={_quote(s)}"
        )
    if sep in s[idx + 1 :]:
        raise SplitOnceError(
            "found multiple separators in the string: "
            f"separator={_quote(sep)} string={_quote(s)}"
        )
    return s[:idx], s[idx + len(sep) :]


def parse(stream: Iterable[str]) -> NixCacheInfo:
    """Parse a nix-cache-info from a text stream or an iterable of lines."""
    info = NixCacheInfo()

    for raw in stream:
        line = raw.removesuffix("\n").removesuffix("\r")
        if not line:
            continue

        try:
            key, value = split_once(line, ": ")
        except SplitOnceError as err:
            raise SplitOnceError(f"error splitting the line by column: {err}") from err

        match key:
            case "StoreDir":
                info.store_dir = value
            case "WantMassQuery":
                info.want_mass_query = _parse_uint(value)
            case "Priority":
                info.priority = _parse_uint(value)
            case _:
                raise UnknownKeyError(f"error the key is not known: {_quote(key)}")

    return info


def parse_string(text: str) -> NixCacheInfo:
    """Parse a nix-cache-info from a string."""
    return parse(io.StringIO(text))
"""Nar URLs and the compression types a binary cache knows."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from enum import StrEnum
from urllib.parse import unquote_plus, urlencode, urlsplit, urlunsplit

from ncps.helper import nar_file_path

_NAR_RE = re.compile(r"nar/([a-z0-9]+)\.nar(\.([a-z0-9]+))?(\?([a-z0-9=&]*))?")


class UnknownFileExtensionError(ValueError):
    """Raised when a file extension maps to no compression type."""

    def __init__(self, message: str = "file extension is not known") -> None:
        super().__init__(message)


class InvalidURLError(ValueError):
    """Raised when a string is not a nar URL."""

    def __init__(self, message: str = "invalid nar URL") -> None:
        super().__init__(message)


class CompressionType(StrEnum):
    """Compression types supported by Nix binary caches."""

    NONE = "none"
    BZIP2 = "bzip2"
    ZSTD = "zstd"
    LZIP = "lzip"
    LZ4 = "lz4"
    BR = "br"
    XZ = "xz"

    @classmethod
    def from_extension(cls, ext: str) -> CompressionType:
        """Return the compression type for a file extension."""
        try:
            return _BY_EXTENSION[ext]
        except KeyError:
            raise UnknownFileExtensionError() from None

    def to_file_extension(self) -> str:
        """Return the file extension used for this compression type."""
        return _EXTENSIONS[self]


_EXTENSIONS = {
    CompressionType.NONE: "",
    CompressionType.BZIP2: "bz2",
    CompressionType.ZSTD: "zst",
    CompressionType.LZIP: "lzip",
    CompressionType.LZ4: "lz4",
    CompressionType.BR: "br",
    CompressionType.XZ: "xz",
}

_BY_EXTENSION = {ext: ct for ct, ext in _EXTENSIONS.items()}
_BY_EXTENSION["none"] = CompressionType.NONE


def _parse_query(raw: str) -> dict[str, list[str]]:
    values: dict[str, list[str]] = {}
    for piece in raw.split("&"):
        if not piece:
            continue
        key, _, value = piece.partition("=")
        values.setdefault(unquote_plus(key), []).append(unquote_plus(value))
    return values


def _clean(path: str) -> str:
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join_path(base: str, elem: str) -> str:
    if base.startswith("/"):
        return _clean(base + "/" + elem)
    return _clean("/" + base + "/" + elem)[1:]


@dataclass
class NarURL:
    """The components of a nar URL as found in a narinfo."""

    hash: str
    compression: CompressionType = CompressionType.NONE
    query: dict[str, list[str]] = field(default_factory=dict)

    def _encode_query(self) -> str:
        pairs = [(key, value) for key in sorted(self.query) for value in self.query[key]]
        return urlencode(pairs)

    def _path_with_compression(self) -> str:
        path = "nar/" + self.hash + ".nar"
        if ext := self.compression.to_file_extension():
            path += "." + ext
        return path

    def bind_logger(
        self, logger: logging.Logger | logging.LoggerAdapter
    ) -> logging.LoggerAdapter:
        """Return a logger adapter that carries the nar fields."""
        fields = {
            "nar_hash": self.hash,
            "nar_compression": str(self.compression),
            "nar_query": self._encode_query(),
        }
        if isinstance(logger, logging.LoggerAdapter):
            fields = {**(logger.extra or {}), **fields}
            logger = logger.logger
        return logging.LoggerAdapter(logger, fields)

    def join_url(self, uri: str) -> str:
        """Return ``uri`` with this nar's path and query appended."""
        parts = urlsplit(uri)
        path = _join_path(parts.path, "/" + self._path_with_compression())
        query = parts.query
        if encoded := self._encode_query():
            query = f"{query}&{encoded}" if query else encoded
        return urlunsplit(parts._replace(path=path, query=query))

    def to_file_path(self) -> str:
        """Return the path of this nar inside the store."""
        return nar_file_path(self.hash, self.compression.to_file_extension())

    def __str__(self) -> str:
        path = self._path_with_compression()
        if encoded := self._encode_query():
            path += "?" + encoded
        return path


def parse_url(u: str) -> NarURL:
    """Parse a nar URL as present in a narinfo."""
    if not u.startswith("nar/"):
        raise InvalidURLError()

    match = _NAR_RE.fullmatch(u)
    if match is None:
        raise InvalidURLError()

    try:
        compression = CompressionType.from_extension(match.group(3) or "")
    except UnknownFileExtensionError as err:
        raise UnknownFileExtensionError(
            f"error computing the compression type: {err}"
        ) from err

    return NarURL(
        hash=match.group(1),
        compression=compression,
        query=_parse_query(match.group(5) or ""),
    )
"""SQLite-backed bookkeeping of cached narinfos and nars."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

SQLITE_CONSTRAINT = 19

_SCHEMA = """
CREATE TABLE IF NOT EXISTS narinfos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    hash TEXT NOT NULL UNIQUE,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP,
    last_accessed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_narinfos_last_accessed_at
    ON narinfos (last_accessed_at);

CREATE TABLE IF NOT EXISTS nars (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    narinfo_id INTEGER NOT NULL REFERENCES narinfos (id) ON DELETE CASCADE,
    hash TEXT NOT NULL UNIQUE,
    compression TEXT NOT NULL DEFAULT '',
    file_size INTEGER NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP,
    last_accessed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    "query" TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_nars_narinfo_id ON nars (narinfo_id);
CREATE INDEX IF NOT EXISTS idx_nars_last_accessed_at ON nars (last_accessed_at);
"""

_NAR_COLUMNS = (
    'id, narinfo_id, hash, compression, file_size, created_at, updated_at, '
    'last_accessed_at, "query"'
)
_NAR_INFO_COLUMNS = "id, hash, created_at, updated_at, last_accessed_at"


class NoRowsError(LookupError):
    """Raised when a query that returns one row finds none."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Nar:
    """A nar record."""

    id: int
    nar_info_id: int
    hash: str
    compression: str
    file_size: int
    created_at: datetime
    updated_at: datetime | None
    last_accessed_at: datetime | None
    query: str

    @classmethod
    def _from_row(cls, row: Sequence[Any]) -> Nar:
        return cls(
            id=row[0],
            nar_info_id=row[1],
            hash=row[2],
            compression=row[3],
            file_size=row[4],
            created_at=_timestamp(row[5]),
            updated_at=_timestamp(row[6]),
            last_accessed_at=_timestamp(row[7]),
            query=row[8],
        )


@dataclass
class NarInfo:
    """A narinfo record."""

    id: int
    hash: str
    created_at: datetime
    updated_at: datetime | None
    last_accessed_at: datetime | None

    @classmethod
    def _from_row(cls, row: Sequence[Any]) -> NarInfo:
        return cls(
            id=row[0],
            hash=row[1],
            created_at=_timestamp(row[2]),
            updated_at=_timestamp(row[3]),
            last_accessed_at=_timestamp(row[4]),
        )


@dataclass
class CreateNarParams:
    """The values needed to create a nar record."""

    nar_info_id: int
    hash: str
    compression: str = ""
    query: str = ""
    file_size: int = 0


class Queries:
    """The queries run against the cache database.

    A single connection is shared and guarded by a lock, so that writes at a
    fast rate never fail with ``database is locked``.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying database connection."""
        return self._conn

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> tuple:
        rows = self._fetchall(sql, params)
        if not rows:
            raise NoRowsError()
        return rows[0]

    def _rowcount(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._lock:
            return self._conn.execute(sql, params).rowcount

    def create_schema(self) -> None:
        """Create the tables and indexes if they do not exist yet."""
        with self._lock:
            self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def create_nar(self, params: CreateNarParams) -> Nar:
        """Insert a nar and return the stored record."""
        row = self._fetchone(
            "INSERT INTO nars (narinfo_id, hash, compression, query, file_size) "
            f"VALUES (?, ?, ?, ?, ?) RETURNING {_NAR_COLUMNS}",
            (
                params.nar_info_id,
                params.hash,
                params.compression,
                params.query,
                params.file_size,
            ),
        )
        return Nar._from_row(row)

    def create_nar_info(self, hash: str) -> NarInfo:
        """Insert a narinfo and return the stored record."""
        row = self._fetchone(
            f"INSERT INTO narinfos (hash) VALUES (?) RETURNING {_NAR_INFO_COLUMNS}",
            (hash,),
        )
        return NarInfo._from_row(row)

    def delete_nar_by_hash(self, hash: str) -> int:
        """Delete the nar with ``hash``; return the number of rows removed."""
        return self._rowcount("DELETE FROM nars WHERE hash = ?", (hash,))

    def delete_nar_by_id(self, id: int) -> int:
        """Delete the nar with ``id``; return the number of rows removed."""
        return self._rowcount("DELETE FROM nars WHERE id = ?", (id,))

    def delete_nar_info_by_hash(self, hash: str) -> int:
        """Delete the narinfo with ``hash``; return the number of rows removed."""
        return self._rowcount("DELETE FROM narinfos WHERE hash = ?", (hash,))

    def delete_nar_info_by_id(self, id: int) -> int:
        """Delete the narinfo with ``id``; return the number of rows removed."""
        return self._rowcount("DELETE FROM narinfos WHERE id = ?", (id,))

    def get_least_used_nars(self, file_size: int) -> list[Nar]:
        """Return the least recently used nars whose cumulative size fits ``file_size``."""
        rows = self._fetchall(
            "SELECT n1.id, n1.narinfo_id, n1.hash, n1.compression, n1.file_size, "
            'n1.created_at, n1.updated_at, n1.last_accessed_at, n1."query" '
            "FROM nars n1 "
            "WHERE (SELECT SUM(n2.file_size) FROM nars n2 "
            "WHERE n2.last_accessed_at <= n1.last_accessed_at) <= ?",
            (file_size,),
        )
        return [Nar._from_row(row) for row in rows]

    def get_nar_by_hash(self, hash: str) -> Nar:
        """Return the nar with ``hash``."""
        row = self._fetchone(f"SELECT {_NAR_COLUMNS} FROM nars WHERE hash = ?", (hash,))
        return Nar._from_row(row)

    def get_nar_by_id(self, id: int) -> Nar:
        """Return the nar with ``id``."""
        row = self._fetchone(f"SELECT {_NAR_COLUMNS} FROM nars WHERE id = ?", (id,))
        return Nar._from_row(row)

    def get_nar_info_by_hash(self, hash: str) -> NarInfo:
        """Return the narinfo with ``hash``."""
        row = self._fetchone(
            f"SELECT {_NAR_INFO_COLUMNS} FROM narinfos WHERE hash = ?", (hash,)
        )
        return NarInfo._from_row(row)

    def get_nar_info_by_id(self, id: int) -> NarInfo:
        """Return the narinfo with ``id``."""
        row = self._fetchone(
            f"SELECT {_NAR_INFO_COLUMNS} FROM narinfos WHERE id = ?", (id,)
        )
        return NarInfo._from_row(row)

    def get_nar_total_size(self) -> float | None:
        """Return the total size of all nars, or None when there are none."""
        (total,) = self._fetchone("SELECT SUM(file_size) AS total_size FROM nars")
        return None if total is None else float(total)

    def touch_nar(self, hash: str) -> int:
        """Mark the nar with ``hash`` as accessed now; return the rows updated."""
        return self._rowcount(
            "UPDATE nars SET last_accessed_at = CURRENT_TIMESTAMP, "
            "updated_at = CURRENT_TIMESTAMP WHERE hash = ?",
            (hash,),
        )

    def touch_nar_info(self, hash: str) -> int:
        """Mark the narinfo with ``hash`` as accessed now; return the rows updated."""
        return self._rowcount(
            "UPDATE narinfos SET last_accessed_at = CURRENT_TIMESTAMP, "
            "updated_at = CURRENT_TIMESTAMP WHERE hash = ?",
            (hash,),
        )


def open_database(db_url: str) -> Queries:
    """Open the database at ``db_url`` (``sqlite:<path>``), creating the file if needed."""
    try:
        parts = urlsplit(db_url)
    except ValueError as err:
        raise ValueError(f"error parsing the database URL {db_url!r}: {err}") from err

    if parts.scheme != "sqlite":
        raise ValueError(f"driver {parts.scheme!r} unrecognized")

    try:
        connection = sqlite3.connect(
            parts.path, check_same_thread=False, isolation_level=None
        )
    except sqlite3.Error as err:
        raise sqlite3.OperationalError(
            f"error opening the database at {db_url!r}: {err}"
        ) from err

    return Queries(connection)


def error_is_no(err: BaseException | None, code: int) -> bool:
    """Return True if ``err`` is an SQLite error whose code matches ``code``."""
    if not isinstance(err, sqlite3.Error):
        return False
    errcode = getattr(err, "sqlite_errorcode", None)
    if errcode is None:
        return False
    return errcode == code or (errcode & 0xFF) == code
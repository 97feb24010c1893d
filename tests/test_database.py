import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from ncps.database import (
    SQLITE_CONSTRAINT,
    CreateNarParams,
    NoRowsError,
    error_is_no,
    open_database,
)
from ncps.helper import rand_string
from ncps.nar import CompressionType

# (narinfo hash, nar hash, compression named in the narinfo, nar compression, size)
ENTRIES = [
    ("n5glp21rsz314qssw9fbvfswgy3kc68f", "1lid9xrpirkzcpqsxfq02qwiq0yd70chfl860wzsqd1739ih0nri", "xz", "xz", 50160),
    ("3acqrvb06vw0w3s9fa3wci433snbi2bg", "1xqqdh1yn5sz3d6wcz3qz3azm5mbypwq6mv8g2dal1v042h0sprf", "xz", "xz", 50308),
    ("1q8w6gl1ll0mwfkqc3c2yx005s6wwfrl", "1dglqjx5wm3sdq0ggngcyh4gpcwykngkxps0a8v4v1f1f2lzdwd1", "xz", "xz", 50364),
    ("jiwdym6f9w6v5jcbqf5wn7fmg11v5q0j", "14vg46h9nbbqgbrbszrqm48f0bgzj6c4q3wkkcjf6gp53g8b21gh", "none", "zstd", 226488),
    ("1gxz5nfzfnhyxjdyzi04r86sh61y4i00", "0fn02ls73n5ndgvvclll1lkg0viq4cbmhx8xcgr5flmzrcvjiarn", "xz", "xz", 50264),
    ("6lwdzpbig6zz8678blcqr5f5q1caxjw2", "1z2a10f88f36n0iqkl831drchx3f04cs96kypjyrj0rrbcpww28n", "xz", "xz", 43624),
]


@pytest.fixture
def db(tmp_path):
    db_file = tmp_path / "var" / "ncps" / "db" / "db.sqlite"
    db_file.parent.mkdir(parents=True)
    queries = open_database("sqlite:" + str(db_file))
    queries.create_schema()
    yield queries
    queries.close()


def _count(db, table):
    return db.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def _make_nar(db, **overrides):
    nar_info = db.create_nar_info(rand_string(32))
    params = CreateNarParams(
        nar_info_id=nar_info.id, hash=rand_string(32), compression="", file_size=123
    )
    for key, value in overrides.items():
        setattr(params, key, value)
    return db.create_nar(params)


def test_open_unknown_driver():
    with pytest.raises(ValueError, match="unrecognized"):
        open_database("postgres://localhost/db")


def test_get_nar_info_by_hash_missing(db):
    with pytest.raises(NoRowsError):
        db.get_nar_info_by_hash(rand_string(32))


def test_get_nar_info_by_hash_existing(db):
    hash = rand_string(32)
    created = db.create_nar_info(hash)
    fetched = db.get_nar_info_by_hash(hash)
    assert fetched.hash == created.hash
    assert fetched.id == created.id


def test_insert_one_narinfo(db):
    hash = rand_string(32)
    created = db.create_nar_info(hash)

    assert _count(db, "narinfos") == 1
    stored = db.get_nar_info_by_id(created.id)
    assert stored.hash == hash
    assert datetime.now(timezone.utc) - stored.created_at < timedelta(seconds=3)
    assert stored.updated_at is None
    assert stored.created_at == stored.last_accessed_at


def test_narinfo_hash_is_unique(db):
    hash = rand_string(32)
    db.create_nar_info(hash)
    with pytest.raises(sqlite3.IntegrityError) as excinfo:
        db.create_nar_info(hash)
    assert error_is_no(excinfo.value, SQLITE_CONSTRAINT)


def test_error_is_no_other_errors():
    assert error_is_no(ValueError("boom"), SQLITE_CONSTRAINT) is False
    assert error_is_no(None, SQLITE_CONSTRAINT) is False


def test_can_write_many_narinfos(db):
    def create(_):
        return db.create_nar_info(rand_string(128)).id

    with ThreadPoolExecutor(max_workers=16) as pool:
        ids = list(pool.map(create, range(500)))

    assert len(set(ids)) == 500
    assert _count(db, "narinfos") == 500


def test_touch_nar_info_missing(db):
    assert db.touch_nar_info(rand_string(32)) == 0


def test_touch_nar_info_existing(db):
    hash = rand_string(32)
    created = db.create_nar_info(hash)
    assert created.created_at == created.last_accessed_at
    assert created.updated_at is None

    time.sleep(1)
    assert db.touch_nar_info(hash) == 1

    touched = db.get_nar_info_by_hash(hash)
    assert touched.created_at != touched.last_accessed_at
    assert touched.updated_at is not None
    assert touched.updated_at == touched.last_accessed_at


def test_delete_nar_info_missing(db):
    assert db.delete_nar_info_by_hash(rand_string(32)) == 0


def test_delete_nar_info_existing(db):
    hash = rand_string(32)
    db.create_nar_info(hash)
    assert db.delete_nar_info_by_hash(hash) == 1
    assert _count(db, "narinfos") == 0


def test_delete_nar_info_by_id(db):
    created = db.create_nar_info(rand_string(32))
    assert db.delete_nar_info_by_id(created.id) == 1
    with pytest.raises(NoRowsError):
        db.get_nar_info_by_id(created.id)


def test_get_nar_by_hash_missing(db):
    db.create_nar_info(rand_string(32))
    with pytest.raises(NoRowsError):
        db.get_nar_by_hash(rand_string(32))


def test_get_nar_by_hash_existing(db):
    nar_info = db.create_nar_info(rand_string(32))
    nar_hash = rand_string(32)
    created = db.create_nar(
        CreateNarParams(
            nar_info_id=nar_info.id,
            hash=nar_hash,
            compression=str(CompressionType.XZ),
            query="hash=123&key=value",
            file_size=123,
        )
    )
    fetched = db.get_nar_by_hash(nar_hash)
    assert fetched.hash == created.hash
    assert fetched.nar_info_id == created.nar_info_id
    assert fetched.compression == created.compression == "xz"
    assert fetched.file_size == created.file_size == 123
    assert fetched.query == "hash=123&key=value"


@pytest.mark.parametrize("compression", list(CompressionType))
def test_insert_nar(db, compression):
    nar_info = db.create_nar_info(rand_string(32))
    hash = rand_string(32)
    created = db.create_nar(
        CreateNarParams(
            nar_info_id=nar_info.id,
            hash=hash,
            compression=str(compression),
            file_size=123,
        )
    )

    assert _count(db, "nars") == 1
    stored = db.get_nar_by_id(created.id)
    assert stored.nar_info_id == nar_info.id
    assert stored.hash == hash
    assert stored.compression == str(compression)
    assert stored.file_size == 123
    assert datetime.now(timezone.utc) - stored.created_at < timedelta(seconds=3)
    assert stored.updated_at is None
    assert stored.created_at == stored.last_accessed_at


def test_nar_hash_is_unique(db):
    nar_info = db.create_nar_info(rand_string(32))
    params = CreateNarParams(nar_info_id=nar_info.id, hash=rand_string(32), file_size=123)
    db.create_nar(params)
    with pytest.raises(sqlite3.IntegrityError) as excinfo:
        db.create_nar(params)
    assert error_is_no(excinfo.value, SQLITE_CONSTRAINT)


def test_touch_nar_missing(db):
    assert db.touch_nar(rand_string(32)) == 0


def test_touch_nar_existing(db):
    created = _make_nar(db)
    assert created.updated_at is None
    assert created.created_at == created.last_accessed_at

    time.sleep(1)
    assert db.touch_nar(created.hash) == 1

    touched = db.get_nar_by_hash(created.hash)
    assert touched.created_at != touched.last_accessed_at
    assert touched.updated_at is not None
    assert touched.updated_at == touched.last_accessed_at


def test_delete_nar_missing(db):
    assert db.delete_nar_by_hash(rand_string(32)) == 0


def test_delete_nar_existing(db):
    created = _make_nar(db)
    assert db.delete_nar_by_hash(created.hash) == 1
    assert _count(db, "nars") == 0


def test_delete_nar_by_id(db):
    created = _make_nar(db)
    assert db.delete_nar_by_id(created.id) == 1
    assert db.delete_nar_by_id(created.id) == 0


def test_nar_total_size_empty(db):
    assert db.get_nar_total_size() is None


def test_nar_total_size(db):
    for nar_info_hash, nar_hash, _, _, size in ENTRIES:
        nar_info = db.create_nar_info(nar_info_hash)
        db.create_nar(
            CreateNarParams(
                nar_info_id=nar_info.id,
                hash=nar_hash,
                compression=str(CompressionType.XZ),
                file_size=size,
            )
        )

    assert db.get_nar_total_size() == 471208.0


def test_get_least_used_nars(db):
    entries = [entry for entry in ENTRIES if entry[2] == entry[3]]
    assert len(entries) == 5

    total = 0
    for nar_info_hash, nar_hash, _, _, size in entries:
        total += size
        nar_info = db.create_nar_info(nar_info_hash)
        db.create_nar(
            CreateNarParams(
                nar_info_id=nar_info.id,
                hash=nar_hash,
                compression=str(CompressionType.XZ),
                file_size=size,
            )
        )

    time.sleep(1)

    for _, nar_hash, _, _, _ in entries[:-1]:
        assert db.touch_nar(nar_hash) == 1

    last = entries[-1]
    nars = db.get_least_used_nars(total - last[4])

    assert [nar.hash for nar in nars] == [last[1]]
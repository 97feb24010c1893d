# ncps

Building blocks for a proxy cache in front of Nix binary caches: naming and
sharding of store files, nar URL handling, `nix-cache-info` parsing, a store
that keeps narinfos and nars on the local disk, and an SQLite index that
tracks what is cached and when it was last used.

The package has no dependencies outside the standard library.

## Modules

- `ncps.helper`
  - `nar_info_file_path(hash)` and `nar_file_path(hash, compression="")`
    return sharded relative paths such as `a/ab/abc123.narinfo` and
    `d/de/def456.nar.xz`; `file_path_with_sharding(fn)` does the sharding.
    All three raise `ValueError` for names shorter than three characters.
  - `rand_string(n, rng=None)` returns `n` random lower-case letters and
    digits, using a cryptographically secure source unless a
    `random.Random` is given.
  - `parse_size(value)` turns `"2B"`, `"3K"`, `"4M"`, `"9G"` or `"10T"`
    (either case, powers of 1024) into bytes; an unknown suffix raises
    `InvalidSizeSuffixError`, a malformed number raises `ValueError`.
  - `nar_info_url_path(hash)` returns `"/<hash>.narinfo"`.
- `ncps.nar`
  - `CompressionType`, a string enum (`none`, `bzip2`, `zstd`, `lzip`,
    `lz4`, `br`, `xz`) with `from_extension(ext)` and
    `to_file_extension()`; an unknown extension raises
    `UnknownFileExtensionError`.
  - `NarURL(hash, compression, query)`: `str()` gives the
    `nar/<hash>.nar[.<ext>][?query]` form, `join_url(uri)` appends it to a
    base URL string, `to_file_path()` gives the sharded store path, and
    `bind_logger(logger)` returns a `logging.LoggerAdapter` carrying the
    `nar_hash`, `nar_compression` and `nar_query` fields.
  - `parse_url(u)` parses the `URL:` field of a narinfo; anything else
    raises `InvalidURLError`.
- `ncps.nixcacheinfo` – `parse(stream)` and `parse_string(text)` return a
  `NixCacheInfo` (`store_dir`, `want_mass_query`, `priority`). Unknown keys
  raise `UnknownKeyError`; lines that do not split once on `": "` raise
  `SplitOnceError` (see `split_once(s, sep)`).
- `ncps.storage` – the protocols `ConfigStore`, `NarInfoStore` and
  `NarStore`, and the exceptions `NotFoundError` and `AlreadyExistsError`.
- `ncps.local` – `LocalStore(path)`, a disk implementation of the three
  protocols. The path must be absolute, existing, a directory and writable
  (`PathMustBeAbsoluteError`, `PathMustExistError`,
  `PathMustBeADirectoryError`, `PathMustBeWritableError`). It creates
  `config/`, `store/narinfo/`, `store/nar/` and a fresh `store/tmp/`. The
  secret key and narinfos are stored as text; `get_nar` returns the size and
  an open binary reader, which the caller closes; `put_nar` writes through a
  temporary file and returns the number of bytes written. Files are written
  read-only for the owner.
- `ncps.database` – `open_database("sqlite:<path>")` returns `Queries`, an
  index of narinfos and nars over one shared, locked connection. Call
  `create_schema()` once to create the tables. It offers create, get (by
  hash or id), delete (returning the rows removed), `touch_nar` /
  `touch_nar_info` to record access, `get_nar_total_size()` and
  `get_least_used_nars(file_size)`. Missing rows raise `NoRowsError`;
  `error_is_no(err, SQLITE_CONSTRAINT)` recognises a duplicate hash.
- `ncps.telemetry` – `new_resource(service_name, service_version)` returns a
  dict of service, process, runtime, OS, container and host attributes,
  including those from `OTEL_RESOURCE_ATTRIBUTES` and `OTEL_SERVICE_NAME`.
- `ncps.otellog` – `OtelWriter(emit=None)` takes JSON log lines through
  `write(data)`, turns them into `LogRecord`s with a `Severity`, a body and
  typed `KeyValue` attributes, and passes them to `emit` or, by default, to
  the standard `logging` module.

## Install

```
pip install .
```

## Example

```python
from ncps.database import CreateNarParams, open_database
from ncps.helper import parse_size
from ncps.nar import parse_url
from ncps.nixcacheinfo import parse_string

url = parse_url("nar/1mb5fxh7nzbx1b2q40bgzwjnjh8xqfap9mfnfqxlvvgvdyv8xwps.nar.xz")
print(url.hash, url.compression, url.to_file_path())
print(url.join_url("http://cache.example.com"))

print(parse_size("10G"))  # 10737418240

info = parse_string("StoreDir: /nix/store\nWantMassQuery: 1\nPriority: 40")
print(info.priority)  # 40

with open_database("sqlite:/tmp/ncps.sqlite") as db:
    db.create_schema()
    nar_info = db.create_nar_info("n5glp21rsz314qssw9fbvfswgy3kc68f")
    db.create_nar(CreateNarParams(nar_info_id=nar_info.id, hash=url.hash,
                                  compression="xz", file_size=50160))
    print(db.get_nar_total_size())
```

## What it does not do

There is no HTTP server and no command to run: nothing here answers requests
from Nix clients, fetches from upstream caches, or evicts files by size. The
narinfo is kept as plain text; it is not parsed, checked or signed, and the
secret key is stored and returned as a string without being generated or
loaded as a key. Telemetry stops at the attribute dict and the log writer;
there are no trace or metric exporters.

## Tests

```
pip install .[test]
pytest
```
"""Nar URLs, sharded store paths, nix-cache-info parsing, a local disk store and an SQLite index for a Nix binary cache proxy."""

__version__ = "0.1.0"
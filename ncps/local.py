"""A store that keeps narinfos, nars and the signing key on the local disk."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import Any, BinaryIO

from ncps.helper import nar_info_file_path
from ncps.nar import NarURL
from ncps.storage import AlreadyExistsError, NotFoundError

FILE_MODE = 0o400
DIR_MODE = 0o700

_log = logging.getLogger(__name__)


class PathMustBeAbsoluteError(ValueError):
    """Raised when the store path is not absolute."""

    def __init__(self, message: str = "path must be absolute") -> None:
        super().__init__(message)


class PathMustExistError(ValueError):
    """Raised when the store path does not exist."""

    def __init__(self, message: str = "path must exist") -> None:
        super().__init__(message)


class PathMustBeADirectoryError(ValueError):
    """Raised when the store path is not a directory."""

    def __init__(self, message: str = "path must be a directory") -> None:
        super().__init__(message)


class PathMustBeWritableError(ValueError):
    """Raised when the store path is not writable."""

    def __init__(self, message: str = "path must be writable") -> None:
        super().__init__(message)


def _is_writable(path: str) -> bool:
    try:
        fd, name = tempfile.mkstemp(dir=path, prefix="write_test")
    except OSError as err:
        _log.error("error writing a temp file in the path %s: %s", path, err)
        return False
    os.close(fd)
    os.remove(name)
    return True


def _validate_path(path: str) -> None:
    if not os.path.isabs(path):
        _log.error("path is not absolute: %s", path)
        raise PathMustBeAbsoluteError()

    try:
        is_dir = os.path.isdir(path) if os.stat(path) else False
    except FileNotFoundError:
        _log.error("path does not exist: %s", path)
        raise PathMustExistError() from None

    if not is_dir:
        _log.error("path is not a directory: %s", path)
        raise PathMustBeADirectoryError()

    if not _is_writable(path):
        raise PathMustBeWritableError()


class LocalStore:
    """Configuration, narinfo and nar storage under a directory on disk."""

    def __init__(self, path: str) -> None:
        _validate_path(path)
        self._path = path
        try:
            self._setup_dirs()
        except OSError as err:
            raise OSError(f"error setting up the store directory: {err}") from err

    @property
    def path(self) -> str:
        """The root directory of the store."""
        return self._path

    @property
    def _config_path(self) -> str:
        return os.path.join(self._path, "config")

    @property
    def _secret_key_path(self) -> str:
        return os.path.join(self._config_path, "cache.key")

    @property
    def _store_path(self) -> str:
        return os.path.join(self._path, "store")

    @property
    def _store_nar_info_path(self) -> str:
        return os.path.join(self._store_path, "narinfo")

    @property
    def _store_nar_path(self) -> str:
        return os.path.join(self._store_path, "nar")

    @property
    def _store_tmp_path(self) -> str:
        return os.path.join(self._store_path, "tmp")

    def _setup_dirs(self) -> None:
        shutil.rmtree(self._store_tmp_path, ignore_errors=False) if os.path.exists(
            self._store_tmp_path
        ) else None
        for directory in (
            self._config_path,
            self._store_path,
            self._store_nar_info_path,
            self._store_nar_path,
            self._store_tmp_path,
        ):
            os.makedirs(directory, mode=DIR_MODE, exist_ok=True)

    def _nar_info_path(self, hash: str) -> str:
        return os.path.join(self._store_nar_info_path, nar_info_file_path(hash))

    def _nar_path(self, nar_url: NarURL) -> str:
        return os.path.join(self._store_nar_path, nar_url.to_file_path())

    def get_secret_key(self) -> str:
        """Return the secret key stored in the configuration directory."""
        try:
            with open(self._secret_key_path, encoding="utf-8") as handle:
                return handle.read().strip()
        except FileNotFoundError:
            raise NotFoundError() from None
        except OSError as err:
            raise OSError(f"error reading the secret: {err}") from err

    def put_secret_key(self, secret_key: Any) -> None:
        """Store the secret key; raise AlreadyExistsError if one is stored."""
        if os.path.exists(self._secret_key_path):
            raise AlreadyExistsError()
        fd = os.open(
            self._secret_key_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, FILE_MODE
        )
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(secret_key))

    def delete_secret_key(self) -> None:
        """Delete the stored secret key."""
        try:
            os.remove(self._secret_key_path)
        except FileNotFoundError:
            raise NotFoundError() from None

    def has_nar_info(self, hash: str) -> bool:
        """Return True if the store has the narinfo."""
        return os.path.exists(self._nar_info_path(hash))

    def get_nar_info(self, hash: str) -> str:
        """Return the text of the narinfo stored for ``hash``."""
        path = self._nar_info_path(hash)
        try:
            with open(path, encoding="utf-8") as handle:
                return handle.read()
        except FileNotFoundError:
            raise NotFoundError() from None
        except OSError as err:
            raise OSError(f"error opening the narinfo file {path!r}: {err}") from err

    def put_nar_info(self, hash: str, nar_info: Any) -> None:
        """Write the narinfo for ``hash``; raise AlreadyExistsError if present."""
        path = self._nar_info_path(hash)
        try:
            os.makedirs(os.path.dirname(path), mode=DIR_MODE, exist_ok=True)
        except OSError as err:
            raise OSError(f"error creating the directories for {path!r}: {err}") from err

        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, FILE_MODE)
        except FileExistsError:
            raise AlreadyExistsError() from None
        except OSError as err:
            raise OSError(
                f"error opening the narinfo file for writing {path!r}: {err}"
            ) from err

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(nar_info))

    def delete_nar_info(self, hash: str) -> None:
        """Delete the narinfo for ``hash``."""
        path = self._nar_info_path(hash)
        try:
            os.remove(path)
        except FileNotFoundError:
            raise NotFoundError() from None
        except OSError as err:
            raise OSError(f"error deleting narinfo {path!r} from store: {err}") from err

    def has_nar(self, nar_url: NarURL) -> bool:
        """Return True if the store has the nar."""
        return os.path.exists(self._nar_path(nar_url))

    def get_nar(self, nar_url: NarURL) -> tuple[int, BinaryIO]:
        """Return the size of the nar and an open reader; the caller closes it."""
        path = self._nar_path(nar_url)
        try:
            size = os.stat(path).st_size
        except FileNotFoundError:
            raise NotFoundError() from None
        except OSError as err:
            raise OSError(f"error stat'ing the nar file {path!r}: {err}") from err

        try:
            reader = open(path, "rb")
        except OSError as err:
            raise OSError(f"error opening the nar file {path!r}: {err}") from err
        return size, reader

    def put_nar(self, nar_url: NarURL, body: BinaryIO) -> int:
        """Write the nar from ``body`` and return the number of bytes written."""
        path = self._nar_path(nar_url)
        if os.path.exists(path):
            raise AlreadyExistsError()

        try:
            os.makedirs(os.path.dirname(path), mode=DIR_MODE, exist_ok=True)
        except OSError as err:
            raise OSError(f"error creating the directories for {path!r}: {err}") from err

        suffix = ".nar"
        if ext := str(nar_url.compression):
            suffix += "." + ext

        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self._store_tmp_path, prefix=nar_url.hash + "-", suffix=suffix
            )
        except OSError as err:
            raise OSError(f"error creating the temporary directory: {err}") from err

        written = 0
        try:
            with os.fdopen(fd, "wb") as handle:
                while chunk := body.read(64 * 1024):
                    handle.write(chunk)
                    written += len(chunk)
        except OSError as err:
            os.remove(tmp_name)
            raise OSError(
                f"error writing the nar to the temporary file: {err}"
            ) from err

        try:
            os.replace(tmp_name, path)
        except OSError as err:
            raise OSError(f"error creating the nar file {path!r}: {err}") from err

        os.chmod(path, FILE_MODE)
        return written

    def delete_nar(self, nar_url: NarURL) -> None:
        """Delete the nar from the store."""
        path = self._nar_path(nar_url)
        try:
            os.remove(path)
        except FileNotFoundError:
            raise NotFoundError() from None
        except OSError as err:
            raise OSError(f"error deleting nar {path!r} from store: {err}") from err
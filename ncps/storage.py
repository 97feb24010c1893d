"""Storage interfaces and the errors they raise."""

from __future__ import annotations

from typing import Any, BinaryIO, Protocol, runtime_checkable

from ncps.nar import NarURL


class NotFoundError(LookupError):
    """Raised when a nar, narinfo or key is not in the store."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class AlreadyExistsError(Exception):
    """Raised when the store already holds a file with the same name."""

    def __init__(self, message: str = "file already exists") -> None:
        super().__init__(message)


@runtime_checkable
class ConfigStore(Protocol):
    """A store for configuration such as the signing key."""

    def get_secret_key(self) -> Any:
        """Return the secret key from the store."""
        ...

    def put_secret_key(self, secret_key: Any) -> None:
        """Store the secret key."""
        ...

    def delete_secret_key(self) -> None:
        """Delete the secret key."""
        ...


@runtime_checkable
class NarInfoStore(Protocol):
    """A store capable of holding narinfos."""

    def has_nar_info(self, hash: str) -> bool:
        """Return True if the store has the narinfo."""
        ...

    def get_nar_info(self, hash: str) -> Any:
        """Return the narinfo from the store."""
        ...

    def put_nar_info(self, hash: str, nar_info: Any) -> None:
        """Put the narinfo in the store."""
        ...

    def delete_nar_info(self, hash: str) -> None:
        """Delete the narinfo from the store."""
        ...


@runtime_checkable
class NarStore(Protocol):
    """A store capable of holding nars."""

    def has_nar(self, nar_url: NarURL) -> bool:
        """Return True if the store has the nar."""
        ...

    def get_nar(self, nar_url: NarURL) -> tuple[int, BinaryIO]:
        """Return the size and an open reader of the nar; the caller closes it."""
        ...

    def put_nar(self, nar_url: NarURL, body: BinaryIO) -> int:
        """Put the nar in the store and return the number of bytes written."""
        ...

    def delete_nar(self, nar_url: NarURL) -> None:
        """Delete the nar from the store."""
        ...
"""Collaborator protocols — runtime-checkable interfaces.

The access layer never stores bytes or authenticates requests itself.
Object storage and identity are supplied by the host application through
these protocols.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import Identity


@runtime_checkable
class ObjectStorage(Protocol):
    """Bucket-like storage for file bytes.

    Paths are opaque keys such as ``alice/1700000000000-report.pdf``.
    """

    async def open(self) -> None:
        """Called when the vault opens.  No-op if not needed."""
        ...

    async def close(self) -> None:
        """Called on shutdown."""
        ...

    async def upload(self, path: str, data: bytes, *, content_type: str | None = None) -> None:
        """Store *data* at *path*.  Raises ``StorageError`` on failure."""
        ...

    async def remove(self, paths: list[str]) -> None:
        """Remove the objects at *paths*.  Missing objects are ignored."""
        ...

    async def exists(self, path: str) -> bool: ...

    async def create_signed_url(
        self,
        path: str,
        expires_in: int,
        *,
        download: bool = False,
    ) -> str:
        """Return a URL valid for *expires_in* seconds.

        With ``download=True`` the URL must force an attachment disposition.
        Raises ``UrlGenerationError`` when no URL can be produced.
        """
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves the current request to an identity, or ``None`` for anonymous.

    The vault never calls this itself; web layers call it once per request
    and pass the result down as ``identity=``.
    """

    async def current_identity(self) -> Identity | None: ...

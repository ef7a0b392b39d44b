"""LocalObjectStorage — disk-backed object storage with signed URLs.

Implements the ``ObjectStorage`` protocol for development and single-host
deployments.  URLs carry an ``itsdangerous`` timestamped token over the
object key, the disposition and the lifetime, and are served by whatever
web layer calls ``verify_signed_url`` and ``read``.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

from itsdangerous import BadData, TimestampSigner, URLSafeTimedSerializer

from .exceptions import StorageError, UrlGenerationError

if TYPE_CHECKING:
    from collections.abc import Callable

SIGNED_URL_SALT = "filevault.signed-url"


class _ClockSigner(TimestampSigner):
    """TimestampSigner reading time from an injectable clock."""

    def __init__(self, *args: Any, clock: Callable[[], float], **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._clock = clock

    def get_timestamp(self) -> int:
        return int(self._clock())


class LocalObjectStorage:
    """Objects stored as files under *root*.

    Security: ``_resolve_path()`` keeps every key inside *root*, rejecting
    absolute keys, ``..`` segments and symlinks.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        signing_secret: str,
        base_url: str = "http://localhost:8000/storage",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not signing_secret:
            raise ValueError("signing_secret is required")
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(
            signing_secret,
            salt=SIGNED_URL_SALT,
            signer=_ClockSigner,
            signer_kwargs={"clock": clock},
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        pass

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve_path(self, key: str) -> Path:
        """Resolve an object key to a physical path under root."""
        if not key or "\x00" in key:
            raise StorageError(f"Invalid object key: {key!r}")
        rel = key.lstrip("/")
        if not rel:
            raise StorageError(f"Invalid object key: {key!r}")

        candidate = self.root / rel
        current = self.root
        for part in Path(rel).parts:
            current = current / part
            if current.is_symlink():
                raise StorageError(f"Symlinks not allowed in object key: {key}")

        resolved = candidate.resolve()
        try:
            resolved.relative_to(self.root)
        except ValueError:
            raise StorageError(f"Object key escapes storage root: {key}") from None
        return resolved

    # =========================================================================
    # Object operations
    # =========================================================================

    async def upload(self, path: str, data: bytes, *, content_type: str | None = None) -> None:
        """Write *data* atomically via tempfile + replace."""
        resolved = self._resolve_path(path)

        def _write() -> None:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(resolved.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                Path(tmp_path).replace(resolved)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to store {path}: {e}") from e

    async def read(self, path: str) -> bytes:
        resolved = self._resolve_path(path)
        try:
            return await asyncio.to_thread(resolved.read_bytes)
        except FileNotFoundError:
            raise StorageError(f"Object not found: {path}") from None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    async def remove(self, paths: list[str]) -> None:
        resolved = [self._resolve_path(p) for p in paths]

        def _remove() -> None:
            for target in resolved:
                target.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_remove)
        except OSError as e:
            raise StorageError(f"Failed to remove objects: {e}") from e

    async def exists(self, path: str) -> bool:
        try:
            resolved = self._resolve_path(path)
        except StorageError:
            return False
        return await asyncio.to_thread(resolved.is_file)

    # =========================================================================
    # Signed URLs
    # =========================================================================

    async def create_signed_url(
        self,
        path: str,
        expires_in: int,
        *,
        download: bool = False,
    ) -> str:
        """Return ``{base_url}/{key}?download=..&expires_in=..&token=..``.

        The token is a timestamped signature over ``[key, download,
        expires_in]``.  Refuses to sign a key with no stored object, so a
        caller never renders a link that cannot work.
        """
        if expires_in <= 0:
            raise UrlGenerationError("expires_in must be positive")
        if not await self.exists(path):
            raise UrlGenerationError(f"Object not found: {path}")

        token = self._serializer.dumps([path, download, expires_in])
        query = urlencode({"download": int(download), "expires_in": expires_in, "token": token})
        return f"{self.base_url}/{quote(path)}?{query}"

    def verify_signed_url(self, url: str) -> tuple[str, bool] | None:
        """Check a URL minted by ``create_signed_url``.

        Returns ``(path, download)`` while the URL is valid, ``None`` when it
        is expired, tampered with, or not one of ours.
        """
        parts = urlsplit(url)
        base = urlsplit(self.base_url)
        prefix = base.path.rstrip("/") + "/"
        if parts.netloc != base.netloc or not parts.path.startswith(prefix):
            return None

        path = unquote(parts.path[len(prefix) :])
        params = parse_qs(parts.query)
        try:
            download = params["download"][0] == "1"
            expires_in = int(params["expires_in"][0])
            token = params["token"][0]
        except (KeyError, IndexError, ValueError):
            return None

        try:
            payload = self._serializer.loads(token, max_age=expires_in)
        except BadData:
            # SignatureExpired and BadPayload included
            return None

        if payload != [path, download, expires_in]:
            return None
        return path, download

"""FileVaultAsync — async facade over records, grants, links, and storage."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from filevault.access.exceptions import (
    AccessDeniedError,
    StorageError,
    UrlGenerationError,
)
from filevault.access.grants import GrantService, require_identity
from filevault.access.links import PublicLinkManager
from filevault.access.records import RecordStore
from filevault.access.resolver import AccessResolver
from filevault.access.storage import LocalObjectStorage
from filevault.access.types import (
    AccessKind,
    FileInfo,
    GrantInfo,
    GrantResult,
    LinkState,
    ListGrantsResult,
    SignedUrl,
    SpaceUsage,
)
from filevault.access.utils import build_storage_path, guess_mime_type, validate_name
from filevault.events import EventBus, EventType, VaultEvent
from filevault.models.files import StoredFile
from filevault.models.grants import FileGrant

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from filevault.access.policy import UrlPolicy
    from filevault.access.protocol import ObjectStorage
    from filevault.access.types import Identity
    from filevault.config import VaultSettings
    from filevault.models.files import StoredFileBase
    from filevault.models.grants import FileGrantBase

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 2 * 1024 * 1024 * 1024


class FileVaultAsync:
    """Async facade wiring the record store, access resolver, link manager,
    grant service, object storage, and event bus.

    Each public method runs in its own session: committed on success,
    rolled back on any exception.  Identity is always an explicit keyword.

    Usage::

        engine = create_async_engine("sqlite+aiosqlite:///vault.db")
        storage = LocalObjectStorage("./uploads", signing_secret="...")
        vault = FileVaultAsync(engine=engine, storage=storage)
        await vault.open()

        info = await vault.upload_file(b"...", "report.pdf", identity=alice)
        await vault.enable_public_link(info.id, identity=alice)
    """

    def __init__(
        self,
        *,
        storage: ObjectStorage,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        policy: UrlPolicy | None = None,
        file_model: type[StoredFileBase] | None = None,
        grant_model: type[FileGrantBase] | None = None,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        event_bus: EventBus | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is None and session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self._engine = engine
        if session_factory is None:
            assert engine is not None
            session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._session_factory = session_factory

        self._storage = storage
        self._file_model = file_model or StoredFile
        self._grant_model = grant_model or FileGrant
        self._quota_bytes = quota_bytes
        self._event_bus = event_bus or EventBus()

        self._records = RecordStore(self._file_model, self._grant_model)
        self._resolver = AccessResolver(self._records, storage, policy)
        self._links = PublicLinkManager(self._records)
        self._grants = GrantService(self._records)
        self._closed = False

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> FileVaultAsync:
        """Build a vault with a local object store from *settings*."""
        engine = create_async_engine(settings.database_url, echo=False)
        storage = LocalObjectStorage(
            Path(settings.storage_root),
            signing_secret=settings.signing_secret,
            base_url=settings.base_url,
        )
        return cls(
            engine=engine,
            storage=storage,
            policy=settings.url_policy(),
            quota_bytes=settings.storage_quota_bytes,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create tables (if an engine was given) and open storage."""
        if self._engine is not None:
            fm = self._file_model
            gm = self._grant_model
            async with self._engine.begin() as conn:
                await conn.run_sync(
                    lambda c: fm.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )
                await conn.run_sync(
                    lambda c: gm.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )
        await self._storage.open()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._storage.close()
        finally:
            if self._engine is not None:
                await self._engine.dispose()

    async def __aenter__(self) -> FileVaultAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session Management (per-operation only)
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session_scope(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session; commit on success, roll back on error.

        Database failures surface as ``StorageError``.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Record store operation failed: %s", e, exc_info=True)
            raise StorageError("Record store operation failed") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def _emit(self, event_type: EventType, file_id: str, identity: Identity, email: str | None = None) -> None:
        await self._event_bus.emit(
            VaultEvent(event_type=event_type, file_id=file_id, user_id=identity.id, email=email)
        )

    async def _preview_url(self, path: str) -> str | None:
        """Preview URL for listings, or None if the object is gone."""
        expires_in, _ = self._resolver.policy.for_owner_route(AccessKind.PREVIEW)
        try:
            return await self._storage.create_signed_url(path, expires_in)
        except (UrlGenerationError, StorageError):
            logger.warning("Missing storage object: %s", path)
            return None

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        data: bytes,
        name: str,
        *,
        identity: Identity | None,
        content_type: str | None = None,
    ) -> FileInfo:
        """Store *data* and create a record owned by the caller."""
        identity = require_identity(identity)
        valid, error = validate_name(name)
        if not valid:
            raise ValueError(error)

        path = build_storage_path(identity.id, name)
        mime_type = content_type or guess_mime_type(name)
        await self._storage.upload(path, data, content_type=mime_type)

        try:
            async with self._session_scope() as session:
                record = await self._records.insert_file(
                    session,
                    name=name,
                    path=path,
                    mime_type=mime_type,
                    size_bytes=len(data),
                    owner_id=identity.id,
                )
                info = self._records.file_to_info(record)
        except Exception:
            # No record means nothing can ever reach the object.
            await self._storage.remove([path])
            raise

        logger.info("Uploaded %s for %s (%d bytes)", path, identity.id, len(data))
        await self._emit(EventType.FILE_UPLOADED, info.id, identity)
        return info

    async def register_file(
        self,
        *,
        name: str,
        path: str,
        size_bytes: int,
        identity: Identity | None,
        mime_type: str | None = None,
    ) -> FileInfo:
        """Create a record for an object uploaded by an external transport.

        Idempotent on *path*: a second call returns the existing record.
        *path* must sit under the caller's own ``{owner_id}/`` prefix.
        """
        identity = require_identity(identity)
        valid, error = validate_name(name)
        if not valid:
            raise ValueError(error)
        if not path.startswith(f"{identity.id}/"):
            logger.debug("Register refused: %s is outside %s/", path, identity.id)
            raise AccessDeniedError("Not authorized to register this file")

        async with self._session_scope() as session:
            existing = await self._records.find_file_by_path(session, path)
            if existing is not None:
                if existing.owner_id != identity.id:
                    raise AccessDeniedError("Not authorized to register this file")
                return self._records.file_to_info(existing)
            record = await self._records.insert_file(
                session,
                name=name,
                path=path,
                mime_type=mime_type or guess_mime_type(name),
                size_bytes=size_bytes,
                owner_id=identity.id,
            )
            info = self._records.file_to_info(record)

        await self._emit(EventType.FILE_UPLOADED, info.id, identity)
        return info

    async def list_files(
        self,
        *,
        identity: Identity | None,
        mime_type: str | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[FileInfo]:
        """List the caller's files, newest first, each with a preview URL."""
        identity = require_identity(identity)
        async with self._session_scope() as session:
            records = await self._records.list_owner_files(
                session, identity.id, mime_type=mime_type, search=search, limit=limit
            )
            infos = [self._records.file_to_info(r) for r in records]

        for info in infos:
            info.url = await self._preview_url(info.path)
        return infos

    async def rename_file(self, file_id: str, name: str, *, identity: Identity | None) -> FileInfo:
        identity = require_identity(identity)
        valid, error = validate_name(name)
        if not valid:
            raise ValueError(error)

        async with self._session_scope() as session:
            if not await self._records.update_file(session, file_id, identity.id, {"name": name}):
                raise AccessDeniedError("Not authorized to rename this file")
            record = await self._records.find_file_by_owner_and_id(session, identity.id, file_id)
            assert record is not None
            info = self._records.file_to_info(record)

        await self._emit(EventType.FILE_RENAMED, file_id, identity)
        return info

    async def delete_file(self, file_id: str, *, identity: Identity | None) -> None:
        """Delete the record, its grants, and the stored object.

        The storage object is removed after the rows are deleted but before
        the commit.  If removal fails, the transaction rolls back and the
        file is untouched.  If the commit itself fails after removal, the
        record survives without its object: listings show it with
        ``url=None`` and the owner can delete it again.
        """
        identity = require_identity(identity)
        async with self._session_scope() as session:
            record = await self._records.find_file_by_owner_and_id(session, identity.id, file_id)
            if record is None:
                raise AccessDeniedError("Not authorized to delete this file")
            path = record.path
            if not await self._records.delete_file(session, file_id, identity.id):
                raise AccessDeniedError("Not authorized to delete this file")
            await self._storage.remove([path])

        logger.info("Deleted file %s (%s)", file_id, path)
        await self._emit(EventType.FILE_DELETED, file_id, identity)

    async def get_total_space_used(self, *, identity: Identity | None) -> SpaceUsage:
        identity = require_identity(identity)
        async with self._session_scope() as session:
            used = await self._records.total_size(session, identity.id)
        return SpaceUsage(used=used, quota=self._quota_bytes)

    # ------------------------------------------------------------------
    # Email grants
    # ------------------------------------------------------------------

    async def share_file_with_email(
        self,
        file_id: str,
        email: str,
        *,
        identity: Identity | None,
    ) -> GrantResult:
        """Grant *email* access to one of the caller's files."""
        identity = require_identity(identity)
        try:
            async with self._session_scope() as session:
                grant, created = await self._grants.share(session, file_id, email, identity=identity)
                info = self._records.grant_to_info(grant)
        except ValueError as e:
            return GrantResult(success=False, message=str(e))
        except StorageError as e:
            # Lost a race with a concurrent share of the same address.
            if not isinstance(e.__cause__, IntegrityError):
                raise
            return GrantResult(success=True, message=f"{file_id} is already shared with {email}")

        if created:
            await self._emit(EventType.GRANT_ADDED, file_id, identity, info.email)
            return GrantResult(success=True, message=f"Shared {file_id} with {info.email}", grant=info)
        return GrantResult(success=True, message=f"{file_id} is already shared with {info.email}", grant=info)

    async def remove_file_access(
        self,
        file_id: str,
        email: str,
        *,
        identity: Identity | None,
    ) -> GrantResult:
        identity = require_identity(identity)
        async with self._session_scope() as session:
            removed = await self._grants.revoke(session, file_id, email, identity=identity)

        if removed:
            await self._emit(EventType.GRANT_REVOKED, file_id, identity, email)
            return GrantResult(success=True, message=f"Removed access on {file_id} for {email}")
        return GrantResult(success=False, message=f"No grant found on {file_id} for {email}")

    async def get_file_shared_users(self, file_id: str, *, identity: Identity | None) -> ListGrantsResult:
        """List the grants the caller issued on *file_id*."""
        async with self._session_scope() as session:
            grants = await self._grants.list_for_file(session, file_id, identity=identity)
            infos: list[GrantInfo] = [self._records.grant_to_info(g) for g in grants]
        return ListGrantsResult(
            success=True,
            message=f"Found {len(infos)} grant(s)",
            grants=infos,
        )

    async def get_files_shared_with_me(self, *, identity: Identity | None) -> list[FileInfo]:
        """Files shared with the caller's email, each with a preview URL."""
        async with self._session_scope() as session:
            records = await self._grants.list_shared_with(session, identity=identity)
            infos = [self._records.file_to_info(r, include_token=False) for r in records]

        for info in infos:
            info.url = await self._preview_url(info.path)
        return infos

    # ------------------------------------------------------------------
    # Public links
    # ------------------------------------------------------------------

    async def enable_public_link(self, file_id: str, *, identity: Identity | None) -> LinkState:
        identity = require_identity(identity)
        async with self._session_scope() as session:
            state = await self._links.enable(session, file_id, identity=identity)
        await self._emit(EventType.LINK_ENABLED, file_id, identity)
        return state

    async def disable_public_link(self, file_id: str, *, identity: Identity | None) -> LinkState:
        identity = require_identity(identity)
        async with self._session_scope() as session:
            state = await self._links.disable(session, file_id, identity=identity)
        await self._emit(EventType.LINK_DISABLED, file_id, identity)
        return state

    async def rotate_public_link_token(self, file_id: str, *, identity: Identity | None) -> LinkState:
        identity = require_identity(identity)
        async with self._session_scope() as session:
            state = await self._links.rotate(session, file_id, identity=identity)
        await self._emit(EventType.LINK_ROTATED, file_id, identity)
        return state

    # ------------------------------------------------------------------
    # Access resolution
    # ------------------------------------------------------------------

    async def get_signed_url_for_file_id(
        self,
        file_id: str,
        kind: AccessKind | str = AccessKind.PREVIEW,
        *,
        identity: Identity | None,
    ) -> SignedUrl:
        """Temporary URL for an owner, grantee, or any user when the file is public."""
        async with self._session_scope() as session:
            decision = await self._resolver.resolve_by_id(session, file_id, kind, identity=identity)
        return await self._resolver.sign(decision)

    async def get_public_signed_url_by_token(
        self,
        token: str,
        kind: AccessKind | str = AccessKind.PREVIEW,
    ) -> SignedUrl:
        """Temporary URL for an anonymous public-link holder."""
        async with self._session_scope() as session:
            decision = await self._resolver.resolve_by_token(session, token, kind)
        return await self._resolver.sign(decision)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventBus:
        return self._event_bus

    @property
    def storage(self) -> ObjectStorage:
        return self._storage

    @property
    def records(self) -> RecordStore:
        return self._records

    @property
    def resolver(self) -> AccessResolver:
        return self._resolver

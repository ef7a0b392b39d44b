"""RecordStore — file and grant lookups plus conditional writes.

Stateless service that receives the concrete models at construction and
a session at call time.  Every mutation that depends on ownership is a
single conditional statement (``... WHERE id = :id AND owner_id = :owner``)
so the check and the write cannot be split by a concurrent request.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, update
from sqlmodel import select

from .types import FileInfo, GrantInfo
from .utils import normalize_email

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.files import StoredFileBase
    from filevault.models.grants import FileGrantBase


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RecordStore:
    """Lookups and conditional writes over the file and grant tables.

    Constructor receives the concrete models so callers can use custom
    SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        file_model: type[StoredFileBase],
        grant_model: type[FileGrantBase],
    ) -> None:
        self._file_model = file_model
        self._grant_model = grant_model

    @property
    def file_model(self) -> type[StoredFileBase]:
        return self._file_model

    @property
    def grant_model(self) -> type[FileGrantBase]:
        return self._grant_model

    # ------------------------------------------------------------------
    # File lookups
    # ------------------------------------------------------------------

    async def find_file(self, session: AsyncSession, file_id: str) -> StoredFileBase | None:
        model = self._file_model
        result = await session.execute(select(model).where(model.id == file_id))
        return result.scalar_one_or_none()

    async def find_file_by_owner_and_id(
        self,
        session: AsyncSession,
        owner_id: str,
        file_id: str,
    ) -> StoredFileBase | None:
        model = self._file_model
        result = await session.execute(
            select(model).where(
                model.id == file_id,
                model.owner_id == owner_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_public_file(self, session: AsyncSession, file_id: str) -> StoredFileBase | None:
        """Return the file only if its public flag is set."""
        model = self._file_model
        result = await session.execute(
            select(model).where(
                model.id == file_id,
                model.is_public == True,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def find_file_by_public_token(
        self,
        session: AsyncSession,
        token: str,
    ) -> StoredFileBase | None:
        """Return the file holding *token*, only while it is public.

        A dormant token on a private file never matches.
        """
        if not token:
            return None
        model = self._file_model
        result = await session.execute(
            select(model).where(
                model.share_token == token,
                model.is_public == True,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def find_file_by_path(self, session: AsyncSession, path: str) -> StoredFileBase | None:
        model = self._file_model
        result = await session.execute(select(model).where(model.path == path))
        return result.scalar_one_or_none()

    async def find_granted_file(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
    ) -> StoredFileBase | None:
        """Return the file if a grant for *email* exists on it.

        Joins through the file table so a grant left behind by a deleted
        file never resolves.
        """
        fm = self._file_model
        gm = self._grant_model
        result = await session.execute(
            select(fm)
            .join(gm, gm.file_id == fm.id)  # type: ignore[arg-type]
            .where(
                gm.file_id == file_id,
                gm.email == normalize_email(email),
            )
        )
        return result.scalars().first()

    async def list_owner_files(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        mime_type: str | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[StoredFileBase]:
        """List an owner's files, newest first.

        *mime_type* matches exactly when it contains ``/`` and as a major
        type otherwise (``"image"`` matches ``image/png``).  *search* is a
        case-insensitive substring match on the display name.
        """
        model = self._file_model
        query = select(model).where(model.owner_id == owner_id)

        if mime_type:
            if "/" in mime_type:
                query = query.where(model.mime_type == mime_type)
            else:
                query = query.where(
                    model.mime_type.like(_escape_like(mime_type) + "/%", escape="\\")  # type: ignore[union-attr]
                )
        if search:
            query = query.where(
                model.name.ilike("%" + _escape_like(search) + "%", escape="\\")  # type: ignore[union-attr]
            )

        query = query.order_by(model.created_at.desc())  # type: ignore[union-attr]
        if limit:
            query = query.limit(limit)

        result = await session.execute(query)
        return list(result.scalars().all())

    async def total_size(self, session: AsyncSession, owner_id: str) -> int:
        model = self._file_model
        result = await session.execute(
            select(func.coalesce(func.sum(model.size_bytes), 0)).where(model.owner_id == owner_id)
        )
        return int(result.scalar_one())

    async def read_link_state(
        self,
        session: AsyncSession,
        file_id: str,
    ) -> tuple[bool, str | None] | None:
        """Read ``(is_public, share_token)`` straight from the table.

        Column select, so a stale object in the identity map is never
        returned in place of the row just written.
        """
        model = self._file_model
        result = await session.execute(
            select(model.is_public, model.share_token).where(model.id == file_id)
        )
        row = result.first()
        if row is None:
            return None
        return bool(row[0]), row[1]

    # ------------------------------------------------------------------
    # File writes
    # ------------------------------------------------------------------

    async def insert_file(self, session: AsyncSession, **fields: Any) -> StoredFileBase:
        """Create a file record. Flushes but does not commit."""
        record = self._file_model(**fields)
        session.add(record)
        await session.flush()
        return record

    async def update_file(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str,
        values: dict[str, Any],
    ) -> bool:
        """Apply *values* to the file only if *owner_id* owns it.

        Single ``UPDATE ... WHERE id AND owner_id`` statement.  Returns
        True if a row was updated.
        """
        model = self._file_model
        values = {**values, "updated_at": datetime.now(UTC)}
        result = await session.execute(
            update(model)
            .where(
                model.id == file_id,  # type: ignore[arg-type]
                model.owner_id == owner_id,  # type: ignore[arg-type]
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    async def delete_file(self, session: AsyncSession, file_id: str, owner_id: str) -> bool:
        """Delete the file and its grants only if *owner_id* owns it."""
        fm = self._file_model
        result = await session.execute(
            delete(fm)
            .where(
                fm.id == file_id,  # type: ignore[arg-type]
                fm.owner_id == owner_id,  # type: ignore[arg-type]
            )
            .execution_options(synchronize_session=False)
        )
        if not (result.rowcount or 0):  # type: ignore[attr-defined]
            return False
        gm = self._grant_model
        await session.execute(
            delete(gm)
            .where(gm.file_id == file_id)  # type: ignore[arg-type]
            .execution_options(synchronize_session=False)
        )
        return True

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def find_grant(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
    ) -> FileGrantBase | None:
        gm = self._grant_model
        result = await session.execute(
            select(gm).where(
                gm.file_id == file_id,
                gm.email == normalize_email(email),
            )
        )
        return result.scalar_one_or_none()

    async def insert_grant(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
        granted_by: str,
    ) -> FileGrantBase:
        """Create a grant record. Flushes but does not commit."""
        grant = self._grant_model(
            file_id=file_id,
            email=normalize_email(email),
            granted_by=granted_by,
        )
        session.add(grant)
        await session.flush()
        return grant

    async def delete_grant(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
        granted_by: str,
    ) -> bool:
        """Delete the grant *granted_by* issued to *email*. Returns True if found."""
        gm = self._grant_model
        result = await session.execute(
            delete(gm)
            .where(
                gm.file_id == file_id,  # type: ignore[arg-type]
                gm.email == normalize_email(email),  # type: ignore[arg-type]
                gm.granted_by == granted_by,  # type: ignore[arg-type]
            )
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    async def list_grants_for_file(
        self,
        session: AsyncSession,
        file_id: str,
        granted_by: str,
    ) -> Sequence[FileGrantBase]:
        gm = self._grant_model
        result = await session.execute(
            select(gm)
            .where(gm.file_id == file_id, gm.granted_by == granted_by)
            .order_by(gm.created_at)  # type: ignore[arg-type]
        )
        return result.scalars().all()

    async def list_files_shared_with(
        self,
        session: AsyncSession,
        email: str,
    ) -> list[StoredFileBase]:
        fm = self._file_model
        gm = self._grant_model
        result = await session.execute(
            select(fm)
            .join(gm, gm.file_id == fm.id)  # type: ignore[arg-type]
            .where(gm.email == normalize_email(email))
            .order_by(fm.created_at.desc())  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def file_to_info(f: StoredFileBase, *, include_token: bool = True) -> FileInfo:
        """Convert a file record to FileInfo.

        Pass ``include_token=False`` when the info leaves the owner's view.
        """
        return FileInfo(
            id=f.id,
            name=f.name,
            path=f.path,
            mime_type=f.mime_type,
            size_bytes=f.size_bytes,
            owner_id=f.owner_id,
            is_public=f.is_public,
            share_token=f.share_token if include_token else None,
            created_at=f.created_at,
        )

    @staticmethod
    def grant_to_info(g: FileGrantBase) -> GrantInfo:
        return GrantInfo(
            file_id=g.file_id,
            email=g.email,
            granted_by=g.granted_by,
            created_at=g.created_at,
        )

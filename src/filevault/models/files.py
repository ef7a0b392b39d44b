"""StoredFile model — metadata for one object in storage.

Provides ``StoredFileBase`` (non-table) and ``StoredFile`` (concrete table).
Subclass ``StoredFileBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per deployment.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class StoredFileBase(SQLModel):
    """Base fields for a stored file. Subclass with ``table=True`` for a concrete table.

    ``is_public`` and ``share_token`` are independent columns.  A token may
    stay on a private file (dormant); it only resolves while ``is_public``
    is true.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="")
    path: str = Field(index=True, unique=True)
    mime_type: str = Field(default="application/octet-stream")
    size_bytes: int = Field(default=0)
    owner_id: str = Field(index=True)
    is_public: bool = Field(default=False)
    share_token: str | None = Field(default=None, index=True, unique=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class StoredFile(StoredFileBase, table=True):
    """Default file table — ``filevault_files``."""

    __tablename__ = "filevault_files"

"""FileGrant model — tracks email-addressed shares.

Provides ``FileGrantBase`` (non-table) and ``FileGrant`` (concrete table).
The grantee is an email address, not a user id: the person may not have
an account yet when the owner shares with them.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class FileGrantBase(SQLModel):
    """Base fields for a grant record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    file_id: str = Field(index=True)
    email: str = Field(index=True)
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileGrant(FileGrantBase, table=True):
    """Default grant table — ``filevault_file_grants``."""

    __tablename__ = "filevault_file_grants"
    __table_args__ = (UniqueConstraint("file_id", "email", name="uq_grant_file_email"),)

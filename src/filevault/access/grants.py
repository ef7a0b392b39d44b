"""GrantService — share-by-email CRUD.

Stateless service that receives the record store at construction
and a session at call time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import AccessDeniedError, AuthenticationRequiredError
from .utils import normalize_email, validate_email

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.files import StoredFileBase
    from filevault.models.grants import FileGrantBase

    from .records import RecordStore
    from .types import Identity

logger = logging.getLogger(__name__)


def require_identity(identity: Identity | None) -> Identity:
    """Raise if *identity* is missing or has an empty id."""
    if identity is None or not identity.id:
        raise AuthenticationRequiredError("Not authenticated")
    return identity


class GrantService:
    """Manages email grants on files.

    Only the owner may grant.  Revocation is keyed by the granting
    identity, so one owner can never remove a grant someone else issued.
    """

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    async def share(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
        *,
        identity: Identity | None,
    ) -> tuple[FileGrantBase, bool]:
        """Grant *email* access to the caller's file.

        Returns ``(grant, created)``.  Sharing with an address that already
        holds a grant returns the existing grant.  Flushes but does not commit.
        """
        identity = require_identity(identity)
        valid, error = validate_email(email)
        if not valid:
            raise ValueError(error)

        file = await self._records.find_file_by_owner_and_id(session, identity.id, file_id)
        if file is None:
            logger.debug("Share refused: %s does not own %s", identity.id, file_id)
            raise AccessDeniedError("Not authorized to share this file")

        email = normalize_email(email)
        existing = await self._records.find_grant(session, file_id, email)
        if existing is not None:
            return existing, False

        grant = await self._records.insert_grant(session, file_id, email, identity.id)
        logger.info("Granted %s access to file %s", email, file_id)
        return grant, True

    async def revoke(
        self,
        session: AsyncSession,
        file_id: str,
        email: str,
        *,
        identity: Identity | None,
    ) -> bool:
        """Remove the grant the caller issued to *email*. Returns True if found."""
        identity = require_identity(identity)
        removed = await self._records.delete_grant(session, file_id, email, identity.id)
        if removed:
            logger.info("Revoked %s access to file %s", normalize_email(email), file_id)
        return removed

    async def list_for_file(
        self,
        session: AsyncSession,
        file_id: str,
        *,
        identity: Identity | None,
    ) -> list[FileGrantBase]:
        """List grants the caller issued on *file_id*."""
        identity = require_identity(identity)
        return list(await self._records.list_grants_for_file(session, file_id, identity.id))

    async def list_shared_with(
        self,
        session: AsyncSession,
        *,
        identity: Identity | None,
    ) -> list[StoredFileBase]:
        """List files shared with the caller's verified email."""
        identity = require_identity(identity)
        if not identity.email or not identity.email_verified:
            return []
        return await self._records.list_files_shared_with(session, identity.email)

"""PublicLinkManager — enable, disable, and rotate public share tokens.

Token policy: a token survives ``disable``.  It stays on the row, dormant
and inert, because token lookups also require ``is_public``.  ``enable``
reuses a dormant token so links handed out earlier keep working once the
owner turns sharing back on; ``rotate`` is how an owner retires a token.

Each operation is one conditional UPDATE scoped to the owner, so there is
no window between the ownership check and the write.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from .exceptions import AccessDeniedError
from .grants import require_identity
from .tokens import generate_share_token
from .types import LinkState

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .records import RecordStore
    from .types import Identity

logger = logging.getLogger(__name__)


class PublicLinkManager:
    """Owner-only lifecycle of the public flag and share token."""

    def __init__(
        self,
        records: RecordStore,
        token_factory: Callable[[], str] = generate_share_token,
    ) -> None:
        self._records = records
        self._token_factory = token_factory

    async def _apply(
        self,
        session: AsyncSession,
        file_id: str,
        identity: Identity | None,
        values: dict[str, Any],
        action: str,
    ) -> None:
        identity = require_identity(identity)
        updated = await self._records.update_file(session, file_id, identity.id, values)
        if not updated:
            logger.debug("Link %s refused: %s does not own %s", action, identity.id, file_id)
            raise AccessDeniedError("Not authorized to manage this file")

    async def _state(self, session: AsyncSession, file_id: str) -> LinkState:
        state = await self._records.read_link_state(session, file_id)
        if state is None:
            # Deleted between the update and the read, within our own transaction.
            raise AccessDeniedError("Not authorized to manage this file")
        is_public, token = state
        return LinkState(file_id=file_id, is_public=is_public, share_token=token)

    async def enable(
        self,
        session: AsyncSession,
        file_id: str,
        *,
        identity: Identity | None,
    ) -> LinkState:
        """Make the file public, keeping an existing token or minting one."""
        model = self._records.file_model
        await self._apply(
            session,
            file_id,
            identity,
            {
                "is_public": True,
                "share_token": func.coalesce(model.share_token, self._token_factory()),
            },
            "enable",
        )
        logger.info("Public link enabled for file %s", file_id)
        return await self._state(session, file_id)

    async def disable(
        self,
        session: AsyncSession,
        file_id: str,
        *,
        identity: Identity | None,
    ) -> LinkState:
        """Turn public access off.  The token is kept but no longer resolves."""
        await self._apply(session, file_id, identity, {"is_public": False}, "disable")
        logger.info("Public link disabled for file %s", file_id)
        return await self._state(session, file_id)

    async def rotate(
        self,
        session: AsyncSession,
        file_id: str,
        *,
        identity: Identity | None,
    ) -> LinkState:
        """Replace the token.  Every previously distributed link stops working.

        Allowed while the file is private; the new token then grants nothing
        until the link is enabled again.
        """
        token = self._token_factory()
        await self._apply(session, file_id, identity, {"share_token": token}, "rotate")
        logger.info("Public link token rotated for file %s", file_id)
        return await self._state(session, file_id)

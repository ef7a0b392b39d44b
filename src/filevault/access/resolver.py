"""AccessResolver — decides who may get a temporary URL for a file.

Two routes:

- **By id** (authenticated app).  Ownership, then an email grant, then the
  public flag.  The three are alternatives: ownership and grants never
  consult the public flag, and the public check never looks at the email.
- **By token** (anonymous public route).  The token must match a file whose
  public flag is set.  Every failure reads the same to the caller.

The resolver owns no state.  Identity arrives as an argument on each call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    InvalidLinkError,
    UrlGenerationError,
)
from .policy import UrlPolicy
from .types import AccessDecision, AccessKind, SignedUrl

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .protocol import ObjectStorage
    from .records import RecordStore
    from .types import Identity

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "Invalid or expired public link"


class AccessResolver:
    """Resolves access requests and mints temporary URLs."""

    def __init__(
        self,
        records: RecordStore,
        storage: ObjectStorage,
        policy: UrlPolicy | None = None,
    ) -> None:
        self._records = records
        self._storage = storage
        self._policy = policy or UrlPolicy()

    @property
    def policy(self) -> UrlPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_by_id(
        self,
        session: AsyncSession,
        file_id: str,
        kind: AccessKind | str,
        *,
        identity: Identity | None,
    ) -> AccessDecision:
        """Resolve an authenticated request for *file_id*.

        Raises ``AuthenticationRequiredError`` without an identity and
        ``AccessDeniedError`` when no route grants access.
        """
        kind = AccessKind(kind)
        if identity is None or not identity.id:
            raise AuthenticationRequiredError("Not authenticated")

        file = await self._records.find_file_by_owner_and_id(session, identity.id, file_id)
        via = "owner"

        if file is None and identity.email and identity.email_verified:
            file = await self._records.find_granted_file(session, file_id, identity.email)
            via = "grant"

        if file is None:
            file = await self._records.find_public_file(session, file_id)
            via = "public"

        if file is None:
            logger.debug(
                "Access denied for %s on %s: not owner, no grant, not public",
                identity.id,
                file_id,
            )
            raise AccessDeniedError("Access denied")

        expires_in, download = self._policy.for_owner_route(kind)
        logger.debug("Access granted for %s on %s via %s", identity.id, file_id, via)
        return AccessDecision(
            file_id=file.id,
            path=file.path,
            expires_in=expires_in,
            kind=kind,
            via=via,
            download=download,
        )

    async def resolve_by_token(
        self,
        session: AsyncSession,
        token: str,
        kind: AccessKind | str,
    ) -> AccessDecision:
        """Resolve an anonymous public-link request.

        Raises ``InvalidLinkError`` whether the token is unknown, rotated
        away, or belongs to a file that is no longer public.
        """
        kind = AccessKind(kind)
        file = await self._records.find_file_by_public_token(session, token)
        if file is None:
            logger.debug("Public link lookup failed")
            raise InvalidLinkError(INVALID_LINK_MESSAGE)

        expires_in, download = self._policy.for_public_route(kind)
        return AccessDecision(
            file_id=file.id,
            path=file.path,
            expires_in=expires_in,
            kind=kind,
            via="token",
            download=download,
            file=self._records.file_to_info(file, include_token=False),
        )

    # ------------------------------------------------------------------
    # URL minting
    # ------------------------------------------------------------------

    async def sign(self, decision: AccessDecision) -> SignedUrl:
        """Mint a temporary URL for a granted decision.

        Never returns an empty URL: any storage failure surfaces as
        ``UrlGenerationError``.
        """
        try:
            url = await self._storage.create_signed_url(
                decision.path,
                decision.expires_in,
                download=decision.download,
            )
        except UrlGenerationError:
            raise
        except Exception as e:
            # Third-party backends raise their own SDK errors.
            logger.error("Signed URL generation failed for %s: %s", decision.path, e, exc_info=True)
            raise UrlGenerationError("Failed to generate signed URL") from e

        if not url:
            logger.error("Storage returned an empty signed URL for %s", decision.path)
            raise UrlGenerationError("Failed to generate signed URL")

        return SignedUrl(url=url, expires_in=decision.expires_in, file=decision.file)

    async def signed_url_for_file_id(
        self,
        session: AsyncSession,
        file_id: str,
        kind: AccessKind | str,
        *,
        identity: Identity | None,
    ) -> SignedUrl:
        decision = await self.resolve_by_id(session, file_id, kind, identity=identity)
        return await self.sign(decision)

    async def signed_url_for_token(
        self,
        session: AsyncSession,
        token: str,
        kind: AccessKind | str,
    ) -> SignedUrl:
        decision = await self.resolve_by_token(session, token, kind)
        return await self.sign(decision)

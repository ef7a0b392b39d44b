"""URL lifetime policy per request kind and route."""

from __future__ import annotations

from dataclasses import dataclass

from .types import AccessKind

PREVIEW_TTL = 600
DOWNLOAD_TTL = 3600
SECURE_DOWNLOAD_TTL = 300
PUBLIC_DOWNLOAD_TTL = 3600


@dataclass(frozen=True)
class UrlPolicy:
    """Time-to-live and disposition for minted URLs.

    Preview URLs are short-lived.  A secure download is issued right before
    the client fetches, so it is shorter still.  Public-link downloads force
    an attachment disposition.
    """

    preview_ttl: int = PREVIEW_TTL
    download_ttl: int = DOWNLOAD_TTL
    secure_download_ttl: int = SECURE_DOWNLOAD_TTL
    public_download_ttl: int = PUBLIC_DOWNLOAD_TTL

    def __post_init__(self) -> None:
        for name in ("preview_ttl", "download_ttl", "secure_download_ttl", "public_download_ttl"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def for_owner_route(self, kind: AccessKind) -> tuple[int, bool]:
        """Return ``(expires_in, download)`` for the authenticated route."""
        if kind is AccessKind.PREVIEW:
            return self.preview_ttl, False
        if kind is AccessKind.SECURE_DOWNLOAD:
            return self.secure_download_ttl, False
        return self.download_ttl, False

    def for_public_route(self, kind: AccessKind) -> tuple[int, bool]:
        """Return ``(expires_in, download)`` for the anonymous token route."""
        if kind is AccessKind.PREVIEW:
            return self.preview_ttl, False
        return self.public_download_ttl, True

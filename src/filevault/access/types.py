"""Identity, request kinds, and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


class AccessKind(str, Enum):
    """What the caller intends to do with the temporary URL."""

    PREVIEW = "preview"
    DOWNLOAD = "download"
    SECURE_DOWNLOAD = "secure_download"


@dataclass(frozen=True, slots=True)
class Identity:
    """An authenticated caller.

    Attributes:
        id: Stable user id, used for ownership.
        email: Address used to match email grants.
        email_verified: Grants only match a verified address.
    """

    id: str
    email: str | None = None
    email_verified: bool = True


@dataclass
class FileInfo:
    """File metadata returned to callers."""

    id: str
    name: str
    path: str
    mime_type: str
    size_bytes: int
    owner_id: str
    is_public: bool = False
    share_token: str | None = None
    created_at: datetime | None = None
    url: str | None = None


@dataclass
class AccessDecision:
    """Outcome of a successful resolution: what to sign and for how long."""

    file_id: str
    path: str
    expires_in: int
    kind: AccessKind
    via: str
    download: bool = False
    file: FileInfo | None = None


@dataclass
class SignedUrl:
    """A minted temporary URL."""

    url: str
    expires_in: int
    file: FileInfo | None = None


@dataclass
class LinkState:
    """Public-link state of a file after a lifecycle change."""

    file_id: str
    is_public: bool
    share_token: str | None


@dataclass
class GrantInfo:
    """Grant metadata."""

    file_id: str
    email: str
    granted_by: str
    created_at: datetime | None = None


@dataclass
class GrantResult:
    """Result of a share/unshare operation."""

    success: bool
    message: str
    grant: GrantInfo | None = None


@dataclass
class ListGrantsResult:
    """Result of a list grants operation."""

    success: bool
    message: str
    grants: list[GrantInfo] = field(default_factory=list)


@dataclass
class SpaceUsage:
    """Bytes used by an owner against the configured quota."""

    used: int
    quota: int

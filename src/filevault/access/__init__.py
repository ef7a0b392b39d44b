"""Access layer — record store, grants, public links, resolution, storage."""

from filevault.access.exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    FileVaultError,
    InvalidLinkError,
    StorageError,
    UrlGenerationError,
)
from filevault.access.grants import GrantService
from filevault.access.links import PublicLinkManager
from filevault.access.policy import UrlPolicy
from filevault.access.protocol import IdentityProvider, ObjectStorage
from filevault.access.records import RecordStore
from filevault.access.resolver import AccessResolver
from filevault.access.storage import LocalObjectStorage
from filevault.access.tokens import generate_share_token
from filevault.access.types import (
    AccessDecision,
    AccessKind,
    FileInfo,
    GrantInfo,
    GrantResult,
    Identity,
    LinkState,
    ListGrantsResult,
    SignedUrl,
    SpaceUsage,
)

__all__ = [
    "AccessDecision",
    "AccessDeniedError",
    "AccessKind",
    "AccessResolver",
    "AuthenticationRequiredError",
    "FileInfo",
    "FileVaultError",
    "GrantInfo",
    "GrantResult",
    "GrantService",
    "Identity",
    "IdentityProvider",
    "InvalidLinkError",
    "LinkState",
    "ListGrantsResult",
    "LocalObjectStorage",
    "ObjectStorage",
    "PublicLinkManager",
    "RecordStore",
    "SignedUrl",
    "SpaceUsage",
    "StorageError",
    "UrlGenerationError",
    "UrlPolicy",
    "generate_share_token",
]

"""filevault: file storage with owner, grant, and public-link access control."""

__version__ = "0.1.0"

from filevault._vault_async import FileVaultAsync
from filevault.access.exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    FileVaultError,
    InvalidLinkError,
    StorageError,
    UrlGenerationError,
)
from filevault.access.policy import UrlPolicy
from filevault.access.protocol import IdentityProvider, ObjectStorage
from filevault.access.storage import LocalObjectStorage
from filevault.access.types import (
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
from filevault.config import VaultSettings
from filevault.events import EventBus, EventType, VaultEvent

__all__ = [
    "AccessDeniedError",
    "AccessKind",
    "AuthenticationRequiredError",
    "EventBus",
    "EventType",
    "FileInfo",
    "FileVaultAsync",
    "FileVaultError",
    "GrantInfo",
    "GrantResult",
    "Identity",
    "IdentityProvider",
    "InvalidLinkError",
    "LinkState",
    "ListGrantsResult",
    "LocalObjectStorage",
    "ObjectStorage",
    "SignedUrl",
    "SpaceUsage",
    "StorageError",
    "UrlGenerationError",
    "UrlPolicy",
    "VaultEvent",
    "VaultSettings",
    "__version__",
]

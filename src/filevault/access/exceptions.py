"""Custom exception hierarchy for the filevault access layer."""


class FileVaultError(Exception):
    """Base exception for all filevault errors."""


class AuthenticationRequiredError(FileVaultError):
    """Raised when an operation that needs an identity is called without one."""


class AccessDeniedError(FileVaultError, PermissionError):
    """Raised when an identity is present but lacks rights on the file."""


class InvalidLinkError(FileVaultError):
    """Raised when a public token does not resolve to a shared file.

    The message is the same whether the token never existed, was rotated
    away, or belongs to a file that is no longer public.
    """


class StorageError(FileVaultError):
    """Raised on object storage or record store failures."""


class UrlGenerationError(StorageError):
    """Raised when the storage backend could not mint a temporary URL."""

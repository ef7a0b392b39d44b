"""SQLModel database models for filevault."""

from filevault.models.files import StoredFile, StoredFileBase
from filevault.models.grants import FileGrant, FileGrantBase

__all__ = [
    "FileGrant",
    "FileGrantBase",
    "StoredFile",
    "StoredFileBase",
]

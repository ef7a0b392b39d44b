"""Email, filename, and storage-path helpers."""

from __future__ import annotations

import mimetypes
import posixpath
import re
import time

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

MAX_NAME_LENGTH = 255

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    """Strip and lower-case an email address for comparison.

    Examples:
        normalize_email("  B@Example.COM ") -> "b@example.com"
    """
    return email.strip().lower()


def validate_email(email: str) -> tuple[bool, str]:
    """Validate an email address for use as a grantee.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    email = normalize_email(email)
    if not email:
        return False, "Email is required"
    if len(email) > 320:
        return False, "Email too long (max 320 characters)"
    if not _EMAIL_RE.match(email):
        return False, f"Invalid email address: {email!r}"
    return True, ""


def validate_name(name: str) -> tuple[bool, str]:
    """Validate a display filename.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if not name or not name.strip():
        return False, "Filename is required"

    if "\x00" in name:
        return False, "Filename contains null bytes"

    for ch in name:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            return False, f"Filename contains control character: 0x{code:02x}"

    if "/" in name or "\\" in name:
        return False, "Filename must not contain path separators"

    if len(name) > MAX_NAME_LENGTH:
        return False, f"Filename too long (max {MAX_NAME_LENGTH} characters)"

    name_upper = name.upper()
    base_name = name_upper.split(".")[0] if "." in name_upper else name_upper
    if base_name in RESERVED_NAMES:
        return False, f"Reserved filename: {name}"

    return True, ""


def build_storage_path(owner_id: str, name: str, timestamp_ms: int | None = None) -> str:
    """Build the object-storage key for a new upload.

    Keys live under the owner's prefix and carry a millisecond timestamp so
    re-uploading the same name never overwrites an earlier object.

    Examples:
        build_storage_path("alice", "a.pdf", 1700000000000) -> "alice/1700000000000-a.pdf"
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return posixpath.join(owner_id, f"{timestamp_ms}-{name}")


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"

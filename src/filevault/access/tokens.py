"""Public share token generation.

Tokens are bearer capabilities checked without rate limiting, so they
must always come from the OS CSPRNG.
"""

from __future__ import annotations

import secrets

TOKEN_BYTES = 32  # 256-bit tokens.


def generate_share_token() -> str:
    """Return a fresh URL-safe share token."""
    return secrets.token_urlsafe(TOKEN_BYTES)

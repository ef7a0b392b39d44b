"""Vault configuration from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from filevault.access.policy import (
    DOWNLOAD_TTL,
    PREVIEW_TTL,
    PUBLIC_DOWNLOAD_TTL,
    SECURE_DOWNLOAD_TTL,
    UrlPolicy,
)


class VaultSettings(BaseSettings):
    """All config comes from ``FILEVAULT_*`` env vars or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="FILEVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./filevault.db"
    storage_root: str = "./uploads"
    signing_secret: str = ""
    base_url: str = "http://localhost:8000/storage"

    preview_ttl: int = Field(default=PREVIEW_TTL, gt=0)
    download_ttl: int = Field(default=DOWNLOAD_TTL, gt=0)
    secure_download_ttl: int = Field(default=SECURE_DOWNLOAD_TTL, gt=0)
    public_download_ttl: int = Field(default=PUBLIC_DOWNLOAD_TTL, gt=0)

    storage_quota_bytes: int = 2 * 1024 * 1024 * 1024  # 2 GiB

    def url_policy(self) -> UrlPolicy:
        return UrlPolicy(
            preview_ttl=self.preview_ttl,
            download_ttl=self.download_ttl,
            secure_download_ttl=self.secure_download_ttl,
            public_download_ttl=self.public_download_ttl,
        )

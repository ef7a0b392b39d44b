"""Tests for PublicLinkManager — enable, disable, rotate."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

import pytest

from filevault.access.exceptions import AccessDeniedError, AuthenticationRequiredError
from filevault.access.links import PublicLinkManager
from filevault.access.tokens import TOKEN_BYTES, generate_share_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.access.records import RecordStore
    from filevault.access.types import Identity
    from filevault.models import StoredFile


@pytest.fixture
def links(records: RecordStore) -> PublicLinkManager:
    counter = itertools.count(1)
    return PublicLinkManager(records, token_factory=lambda: f"token-{next(counter)}")


@pytest.fixture
async def alice_file(records: RecordStore, async_session: AsyncSession) -> StoredFile:
    return await records.insert_file(
        async_session, name="a.txt", path="alice/1-a.txt", owner_id="alice"
    )


class TestTokens:
    def test_tokens_are_unique_and_long(self):
        tokens = {generate_share_token() for _ in range(100)}
        assert len(tokens) == 100
        # token_urlsafe encodes 32 bytes as 43 base64url chars
        assert all(len(t) >= TOKEN_BYTES for t in tokens)

    def test_default_factory(self, records: RecordStore):
        assert PublicLinkManager(records)._token_factory is generate_share_token


class TestEnable:
    async def test_enable_sets_flag_and_token(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        state = await links.enable(async_session, alice_file.id, identity=alice)
        assert state.is_public is True
        assert state.share_token == "token-1"

    async def test_enable_twice_keeps_token(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        first = await links.enable(async_session, alice_file.id, identity=alice)
        second = await links.enable(async_session, alice_file.id, identity=alice)
        assert second.is_public is True
        assert second.share_token == first.share_token

    async def test_reenable_reuses_dormant_token(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        first = await links.enable(async_session, alice_file.id, identity=alice)
        await links.disable(async_session, alice_file.id, identity=alice)
        again = await links.enable(async_session, alice_file.id, identity=alice)
        assert again.share_token == first.share_token

    async def test_non_owner_refused(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        records: RecordStore,
        alice_file: StoredFile,
        bob: Identity,
    ):
        with pytest.raises(AccessDeniedError, match="Not authorized to manage"):
            await links.enable(async_session, alice_file.id, identity=bob)
        assert await records.read_link_state(async_session, alice_file.id) == (False, None)

    async def test_missing_file_is_authorization_error(
        self, links: PublicLinkManager, async_session: AsyncSession, alice: Identity
    ):
        with pytest.raises(AccessDeniedError):
            await links.enable(async_session, "no-such-file", identity=alice)

    async def test_anonymous_refused(
        self, links: PublicLinkManager, async_session: AsyncSession, alice_file: StoredFile
    ):
        with pytest.raises(AuthenticationRequiredError):
            await links.enable(async_session, alice_file.id, identity=None)


class TestDisable:
    async def test_disable_keeps_token(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        enabled = await links.enable(async_session, alice_file.id, identity=alice)
        state = await links.disable(async_session, alice_file.id, identity=alice)
        assert state.is_public is False
        assert state.share_token == enabled.share_token

    async def test_disable_never_enabled(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        state = await links.disable(async_session, alice_file.id, identity=alice)
        assert state.is_public is False
        assert state.share_token is None

    async def test_non_owner_refused(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        records: RecordStore,
        alice_file: StoredFile,
        alice: Identity,
        bob: Identity,
    ):
        await links.enable(async_session, alice_file.id, identity=alice)
        with pytest.raises(AccessDeniedError):
            await links.disable(async_session, alice_file.id, identity=bob)
        assert await records.read_link_state(async_session, alice_file.id) == (True, "token-1")


class TestRotate:
    async def test_rotate_replaces_token(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        enabled = await links.enable(async_session, alice_file.id, identity=alice)
        rotated = await links.rotate(async_session, alice_file.id, identity=alice)
        assert rotated.share_token != enabled.share_token
        assert rotated.share_token == "token-2"
        assert rotated.is_public is True

    async def test_rotate_while_disabled_is_allowed(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        alice_file: StoredFile,
        alice: Identity,
    ):
        state = await links.rotate(async_session, alice_file.id, identity=alice)
        assert state.is_public is False
        assert state.share_token == "token-1"

    async def test_non_owner_refused(
        self,
        links: PublicLinkManager,
        async_session: AsyncSession,
        records: RecordStore,
        alice_file: StoredFile,
        alice: Identity,
        bob: Identity,
    ):
        await links.enable(async_session, alice_file.id, identity=alice)
        with pytest.raises(AccessDeniedError):
            await links.rotate(async_session, alice_file.id, identity=bob)
        assert await records.read_link_state(async_session, alice_file.id) == (True, "token-1")

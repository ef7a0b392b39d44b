"""Tests for EventBus and vault events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from filevault.events import EventBus, EventType, VaultEvent

if TYPE_CHECKING:
    from filevault import FileVaultAsync, Identity


# =========================================================================
# Helpers
# =========================================================================


class _Collector:
    def __init__(self) -> None:
        self.events: list[VaultEvent] = []

    async def __call__(self, event: VaultEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[EventType]:
        return [e.event_type for e in self.events]


async def _failing_handler(event: VaultEvent) -> None:
    raise RuntimeError(f"boom on {event.file_id}")


# =========================================================================
# EventBus
# =========================================================================


class TestVaultEvent:
    def test_construction(self) -> None:
        ev = VaultEvent(event_type=EventType.GRANT_ADDED, file_id="f1", email="b@example.com")
        assert ev.event_type is EventType.GRANT_ADDED
        assert ev.user_id is None
        assert ev.email == "b@example.com"

    def test_frozen(self) -> None:
        ev = VaultEvent(event_type=EventType.FILE_DELETED, file_id="f1")
        with pytest.raises(AttributeError):
            ev.file_id = "f2"  # type: ignore[misc]


class TestEventBus:
    async def test_dispatch_to_matching_handlers(self) -> None:
        bus = EventBus()
        deleted, rotated = _Collector(), _Collector()
        bus.register(EventType.FILE_DELETED, deleted)
        bus.register(EventType.LINK_ROTATED, rotated)

        await bus.emit(VaultEvent(event_type=EventType.LINK_ROTATED, file_id="f1"))

        assert deleted.events == []
        assert rotated.types == [EventType.LINK_ROTATED]

    async def test_unregister(self) -> None:
        bus = EventBus()
        collector = _Collector()
        bus.register(EventType.FILE_DELETED, collector)
        assert bus.unregister(EventType.FILE_DELETED, collector) is True
        assert bus.unregister(EventType.FILE_DELETED, collector) is False
        assert bus.handler_count == 0

    async def test_failing_handler_does_not_stop_others(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        bus = EventBus()
        collector = _Collector()
        bus.register(EventType.FILE_DELETED, _failing_handler)
        bus.register(EventType.FILE_DELETED, collector)

        with caplog.at_level(logging.WARNING, logger="filevault.events"):
            await bus.emit(VaultEvent(event_type=EventType.FILE_DELETED, file_id="f1"))

        assert collector.types == [EventType.FILE_DELETED]
        assert "failed for file_deleted on f1" in caplog.text

    def test_clear(self) -> None:
        bus = EventBus()
        bus.register(EventType.FILE_UPLOADED, _failing_handler)
        bus.register(EventType.LINK_ENABLED, _failing_handler)
        assert bus.handler_count == 2
        bus.clear()
        assert bus.handler_count == 0


# =========================================================================
# Vault integration
# =========================================================================


class TestVaultEmits:
    async def test_mutations_emit_in_order(
        self, vault: FileVaultAsync, alice: Identity
    ) -> None:
        collector = _Collector()
        for et in EventType:
            vault.events.register(et, collector)

        info = await vault.upload_file(b"x", "a.txt", identity=alice)
        await vault.rename_file(info.id, "b.txt", identity=alice)
        await vault.share_file_with_email(info.id, "b@example.com", identity=alice)
        await vault.remove_file_access(info.id, "b@example.com", identity=alice)
        await vault.enable_public_link(info.id, identity=alice)
        await vault.rotate_public_link_token(info.id, identity=alice)
        await vault.disable_public_link(info.id, identity=alice)
        await vault.delete_file(info.id, identity=alice)

        assert collector.types == [
            EventType.FILE_UPLOADED,
            EventType.FILE_RENAMED,
            EventType.GRANT_ADDED,
            EventType.GRANT_REVOKED,
            EventType.LINK_ENABLED,
            EventType.LINK_ROTATED,
            EventType.LINK_DISABLED,
            EventType.FILE_DELETED,
        ]
        assert {e.file_id for e in collector.events} == {info.id}
        assert {e.user_id for e in collector.events} == {"alice"}

    async def test_failed_mutation_emits_nothing(
        self, vault: FileVaultAsync, alice: Identity, bob: Identity
    ) -> None:
        info = await vault.upload_file(b"x", "a.txt", identity=alice)
        collector = _Collector()
        vault.events.register(EventType.LINK_ENABLED, collector)

        with pytest.raises(PermissionError):
            await vault.enable_public_link(info.id, identity=bob)
        assert collector.events == []

    async def test_repeat_share_emits_once(self, vault: FileVaultAsync, alice: Identity) -> None:
        info = await vault.upload_file(b"x", "a.txt", identity=alice)
        collector = _Collector()
        vault.events.register(EventType.GRANT_ADDED, collector)

        await vault.share_file_with_email(info.id, "b@example.com", identity=alice)
        await vault.share_file_with_email(info.id, "b@example.com", identity=alice)
        assert len(collector.events) == 1

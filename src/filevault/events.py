"""EventBus and event types for notifying the presentation layer of changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of vault mutations a web layer may want to react to."""

    FILE_UPLOADED = "file_uploaded"
    FILE_RENAMED = "file_renamed"
    FILE_DELETED = "file_deleted"
    GRANT_ADDED = "grant_added"
    GRANT_REVOKED = "grant_revoked"
    LINK_ENABLED = "link_enabled"
    LINK_DISABLED = "link_disabled"
    LINK_ROTATED = "link_rotated"


@dataclass(frozen=True, slots=True)
class VaultEvent:
    """Immutable record of a committed mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        file_id: The affected file.
        user_id: The identity that performed the mutation.
        email: Grantee address (grant events only).
    """

    event_type: EventType
    file_id: str
    user_id: str | None = None
    email: str | None = None


class EventBus:
    """Dispatches vault events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: VaultEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.file_id,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()

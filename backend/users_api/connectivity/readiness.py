"""
Users API - Readiness Publisher
================================

What:  Single-writer, multi-reader holder of the current connection state.
Why:   Request handlers need a non-blocking answer to "can I use the store
       right now?" while the supervisor task changes that answer over time.
How:   The state, the store metadata and the store handle live together in one
       frozen ConnectionSnapshot. Publishing replaces the reference to the
       whole snapshot, so a reader sees either the old value or the new one,
       never a mix of fields from both.

Only the supervisor task calls publish(). Everyone else calls current().
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ConnectionState(str, Enum):
    """Lifecycle states of the store connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is ConnectionState.FAILED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConnectionSnapshot:
    """
    One published view of the connection.

    `handle` is only set while CONNECTED. `target` is the (redacted) URI of the
    attempt that produced this state; `error` is the cause of the most recent
    failure, kept across CONNECTING so health output can explain itself.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    target: Optional[str] = None
    database: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    error: Optional[str] = None
    handle: Any = None
    since: datetime = field(default_factory=_utcnow)

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self.handle is not None

    def evolve(self, **changes) -> "ConnectionSnapshot":
        """Copy with changes; always stamps a fresh `since`."""
        changes.setdefault("since", _utcnow())
        return replace(self, **changes)


class ReadinessPublisher:
    """
    Holds the latest ConnectionSnapshot and wakes waiters on every change.

    Waiters grab the current `_changed` event; publish() sets it and installs a
    fresh one, so each waiter is woken exactly once per publication.
    """

    def __init__(self, initial: Optional[ConnectionSnapshot] = None):
        self._snapshot = initial or ConnectionSnapshot()
        self._changed = asyncio.Event()

    def current(self) -> ConnectionSnapshot:
        return self._snapshot

    def publish(self, snapshot: ConnectionSnapshot) -> ConnectionSnapshot:
        previous = self._snapshot
        self._snapshot = snapshot
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        return previous

    async def wait_for_change(self) -> ConnectionSnapshot:
        await self._changed.wait()
        return self._snapshot

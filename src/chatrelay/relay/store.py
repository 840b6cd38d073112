"""In-memory channel store: one global buffer plus lazily created local buffers.

Partitioning is strict.  A local message lives only in its own channel's
buffer and is never mirrored into the global buffer; a global message never
appears in any local channel.

Locking is per buffer.  The local-channel mapping has its own lock that is
held only long enough to look up, create, or remove an entry, so traffic on
unrelated channels never contends.  An entry removed by :meth:`reclaim_idle`
is flagged ``reclaimed`` under its buffer lock; a writer that raced the
removal notices the flag and retries against a fresh entry.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from chatrelay.protocol.types import MAX_CHANNEL_MESSAGES, MAX_FETCH_LIMIT, ChannelClass


@dataclass(frozen=True)
class Message:
    """A relayed chat message.  Never mutated after creation."""

    id: str
    sender_id: str
    username: str
    display_name: str
    body: str
    channel_class: ChannelClass
    channel_id: str | None
    created_at: int  # ms since epoch, ordering key


class ChannelBuffer:
    """Bounded FIFO of messages in insertion (= time) order.

    Callers must hold :attr:`lock` around :meth:`push` and :meth:`select`.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.lock = threading.Lock()
        self._messages: deque[Message] = deque(maxlen=capacity)

    def push(self, message: Message) -> None:
        """Append *message*, evicting the oldest entry when full."""
        self._messages.append(message)

    def select(self, after: int, limit: int) -> list[Message]:
        """Return the newest *limit* messages with ``created_at > after``, oldest first."""
        matching = sorted(
            (m for m in self._messages if m.created_at > after),
            key=lambda m: m.created_at,
        )
        return matching[-limit:]

    def __len__(self) -> int:
        return len(self._messages)


@dataclass
class LocalChannelEntry:
    """A local channel's buffer and the last time anything touched it."""

    buffer: ChannelBuffer
    last_seen_at: float
    reclaimed: bool = field(default=False)


class ChannelStore:
    """Owns the global buffer and the ``channel_id -> LocalChannelEntry`` map.

    Parameters
    ----------
    global_capacity, local_capacity:
        Maximum messages kept per buffer.
    max_limit:
        Hard ceiling applied to every query regardless of the requested limit.
    clock:
        Monotonic clock used for ``last_seen_at`` (seconds).
    """

    def __init__(
        self,
        global_capacity: int = MAX_CHANNEL_MESSAGES,
        local_capacity: int = MAX_CHANNEL_MESSAGES,
        max_limit: int = MAX_FETCH_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._global = ChannelBuffer(global_capacity)
        self._local: dict[str, LocalChannelEntry] = {}
        self._local_lock = threading.Lock()
        self._local_capacity = local_capacity
        self._max_limit = max_limit
        self._clock = clock

    # -- public operations -------------------------------------------------

    def append(
        self, channel_class: ChannelClass, channel_id: str | None, message: Message
    ) -> None:
        """Store *message* in the buffer for ``(channel_class, channel_id)``.

        Raises ``ValueError`` if the target does not match the message's own
        channel, or a local target has no id.
        """
        if message.channel_class != channel_class or message.channel_id != channel_id:
            raise ValueError("message channel does not match append target")
        if channel_class == ChannelClass.GLOBAL:
            with self._global.lock:
                self._global.push(message)
            return
        if not channel_id:
            raise ValueError("local append requires a channel id")
        with self._locked_entry(channel_id, create=True) as entry:
            entry.buffer.push(message)
            entry.last_seen_at = self._clock()

    def query(
        self,
        channel_class: ChannelClass,
        channel_id: str | None,
        after: int,
        limit: int,
    ) -> list[Message]:
        """Return up to *limit* messages newer than *after*, oldest first.

        When more match, the most recent ones are kept.  An unknown local
        channel yields an empty list and is not created.
        """
        limit = min(limit, self._max_limit)
        if limit < 1:
            return []
        if channel_class == ChannelClass.GLOBAL:
            with self._global.lock:
                return self._global.select(after, limit)
        if not channel_id:
            return []
        with self._locked_entry(channel_id, create=False) as entry:
            if entry is None:
                return []
            entry.last_seen_at = self._clock()
            return entry.buffer.select(after, limit)

    def reclaim_idle(self, idle_timeout: float) -> int:
        """Drop every local channel idle for longer than *idle_timeout* seconds.

        Returns the number of channels removed.
        """
        now = self._clock()
        with self._local_lock:
            candidates = [
                (channel_id, entry)
                for channel_id, entry in self._local.items()
                if now - entry.last_seen_at > idle_timeout
            ]
        removed = 0
        for channel_id, entry in candidates:
            with entry.buffer.lock:
                # Touched again since the snapshot
                if entry.reclaimed or self._clock() - entry.last_seen_at <= idle_timeout:
                    continue
                with self._local_lock:
                    if self._local.get(channel_id) is entry:
                        del self._local[channel_id]
                entry.reclaimed = True
                removed += 1
        return removed

    # -- introspection -----------------------------------------------------

    def channel_size(self, channel_class: ChannelClass, channel_id: str | None = None) -> int:
        """Return the number of messages currently held for a channel."""
        if channel_class == ChannelClass.GLOBAL:
            with self._global.lock:
                return len(self._global)
        with self._local_lock:
            entry = self._local.get(channel_id) if channel_id else None
        return len(entry.buffer) if entry is not None else 0

    def has_local_channel(self, channel_id: str) -> bool:
        with self._local_lock:
            return channel_id in self._local

    @property
    def local_channel_count(self) -> int:
        """Number of live local channels."""
        return len(self._local)

    # -- internals ---------------------------------------------------------

    @contextmanager
    def _locked_entry(self, channel_id: str, create: bool) -> Iterator[LocalChannelEntry | None]:
        """Yield the live entry for *channel_id* with its buffer lock held.

        Yields ``None`` when the channel is unknown and *create* is False.
        """
        while True:
            with self._local_lock:
                entry = self._local.get(channel_id)
                if entry is None:
                    if not create:
                        break
                    entry = LocalChannelEntry(
                        buffer=ChannelBuffer(self._local_capacity),
                        last_seen_at=self._clock(),
                    )
                    self._local[channel_id] = entry
            entry.buffer.lock.acquire()
            if entry.reclaimed:
                entry.buffer.lock.release()
                continue
            try:
                yield entry
            finally:
                entry.buffer.lock.release()
            return
        yield None

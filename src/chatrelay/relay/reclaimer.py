"""Background reclamation of idle local channels.

Every ``interval`` seconds, local channels untouched (no send or fetch) for
longer than ``idle_timeout`` are removed from the store entirely.
"""

from __future__ import annotations

import asyncio
import logging

from chatrelay.relay.store import ChannelStore

logger = logging.getLogger(__name__)

RECLAIM_INTERVAL: float = 600.0  # 10 minutes between sweeps
IDLE_TIMEOUT: float = 3600.0     # 60 minutes without activity


class ChannelReclaimer:
    """Owns the periodic sweep task for a :class:`ChannelStore`.

    Parameters
    ----------
    store:
        The store whose local channels are swept.
    interval:
        Seconds between sweeps (default ``RECLAIM_INTERVAL``).
    idle_timeout:
        Seconds of inactivity after which a local channel is dropped
        (default ``IDLE_TIMEOUT``).
    """

    def __init__(
        self,
        store: ChannelStore,
        interval: float = RECLAIM_INTERVAL,
        idle_timeout: float = IDLE_TIMEOUT,
    ) -> None:
        self._store = store
        self._interval = interval
        self._idle_timeout = idle_timeout
        self._task: asyncio.Task | None = None

    # -- public lifecycle --------------------------------------------------

    async def start(self) -> None:
        """Start the background sweep loop."""
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the background sweep loop and wait for clean shutdown."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- sweep -------------------------------------------------------------

    def sweep(self) -> int:
        """Run one reclamation pass.  Returns the number of channels removed."""
        removed = self._store.reclaim_idle(self._idle_timeout)
        if removed:
            logger.info(
                "Reclaimed %d idle local channels (%d remaining)",
                removed,
                self._store.local_channel_count,
            )
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Error in channel reclaim sweep")

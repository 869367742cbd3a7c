from __future__ import annotations

"""Periodic refresh driver for the registry store."""

import asyncio
import contextlib
import logging
from typing import Optional

from business_service.registry.store import RegistryStore


class AutoRefreshScheduler:
    """Background task that calls `store.refresh()` every `interval` seconds."""

    def __init__(
        self,
        store: RegistryStore,
        *,
        interval: float,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._store = store
        self._interval = interval
        self._logger = logger or logging.getLogger("interface_entry.runtime.auto_refresh")
        self._task: Optional[asyncio.Task[None]] = None
        self._stop: Optional[asyncio.Event] = None
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycles(self) -> int:
        return self._cycles

    async def __aenter__(self) -> "AutoRefreshScheduler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop(self._stop), name="registry-auto-refresh")
        self._logger.info("auto_refresh.started", extra={"interval": self._interval})

    async def stop(self) -> None:
        task, stop = self._task, self._stop
        self._task = None
        self._stop = None
        if task is None or stop is None:
            return
        stop.set()
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        self._logger.info("auto_refresh.stopped", extra={"interval": self._interval})

    async def _loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self._store.refresh()
            except Exception:
                self._logger.exception("auto_refresh.cycle_failed")
            self._cycles += 1
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self._interval)


__all__ = ["AutoRefreshScheduler"]

"""Debounced background re-indexing triggered by vault changes.

A change to a selected path schedules an incremental update after a short
debounce, but only once the configured interval has passed since the last
successful auto-update. Only one auto-update runs at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from vaultindex.config import VaultIndexConfig
from vaultindex.indexing.vault import is_path_selected

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 3.0


class RagAutoUpdateService:
    """Schedule incremental index updates from file-change notifications.

    Args:
        get_config: Returns the current configuration.
        run_update: Runs one incremental index update.
        on_updated: Receives the completion timestamp (seconds) after a
            successful run; defaults to recording it on the live config.
        debounce_seconds: Quiet period before a scheduled run starts.
        clock: Wall-clock source, seconds since the epoch.
    """

    def __init__(
        self,
        get_config: Callable[[], VaultIndexConfig],
        run_update: Callable[[], Awaitable[object]],
        *,
        on_updated: Callable[[float], None] | None = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._get_config = get_config
        self._run_update = run_update
        self._on_updated = on_updated or self._record_on_config
        self._debounce_seconds = debounce_seconds
        self._clock = clock
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._is_indexing = False

    @property
    def is_indexing(self) -> bool:
        return self._is_indexing

    @property
    def has_pending_run(self) -> bool:
        return self._timer is not None

    def _record_on_config(self, timestamp: float) -> None:
        self._get_config().auto_update.last_auto_update_at = timestamp

    def on_path_changed(self, path: str) -> None:
        """Handle a created/modified/deleted vault path. Must run inside the event loop."""
        cfg = self._get_config()
        if not cfg.auto_update.enabled:
            return
        if not is_path_selected(
            path, cfg.indexing.include_patterns, cfg.indexing.exclude_patterns
        ):
            return

        interval = cfg.auto_update.interval_hours * 3600
        last = cfg.auto_update.last_auto_update_at or 0.0
        if self._clock() - last < interval:
            return

        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._start_run)

    def _start_run(self) -> None:
        self._timer = None
        self._task = asyncio.get_running_loop().create_task(self.run_auto_update())

    async def run_auto_update(self) -> bool:
        """Run one update unless one is already in flight. Returns True on success."""
        if self._is_indexing:
            return False
        self._is_indexing = True
        try:
            await self._run_update()
            self._on_updated(self._clock())
            logger.info("Vector index updated")
            return True
        except Exception:
            logger.exception("Auto update of the vector index failed")
            return False
        finally:
            self._is_indexing = False

    async def flush(self) -> bool:
        """Run a scheduled update now instead of waiting out the debounce."""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return await self.run_auto_update()

    async def wait_idle(self) -> None:
        """Await the in-flight run, if any."""
        if self._task is not None:
            await self._task

    def cleanup(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

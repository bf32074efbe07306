from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from watchfiles import Change, DefaultFilter, awatch

from secwatch.contracts import ChangeKind
from secwatch.pipeline import DebouncedChangePipeline
from secwatch.tools.files import IGNORE_DIRS

logger = logging.getLogger(__name__)

_KINDS: Dict[Change, ChangeKind] = {
    Change.added: "added",
    Change.modified: "changed",
    Change.deleted: "removed",
}


class SourceFilter(DefaultFilter):
    """watchfiles' default filter plus dependency/build dirs and log files."""

    def __init__(self, ignore_dirs: Sequence[str] = tuple(sorted(IGNORE_DIRS))):
        super().__init__(
            ignore_dirs=tuple(DefaultFilter.ignore_dirs) + tuple(ignore_dirs),
            ignore_entity_patterns=tuple(DefaultFilter.ignore_entity_patterns) + (r"\.log$",),
        )


class FileWatcher:
    """Feeds raw add/change/delete notifications for a tree into the pipeline.

    watchfiles batches and settles writes upstream; everything after that is
    the pipeline's job.
    """

    def __init__(self, watch_dir: Path, pipeline: DebouncedChangePipeline, watch_filter: Optional[DefaultFilter] = None):
        self.watch_dir = Path(watch_dir).resolve()
        self.pipeline = pipeline
        self.watch_filter = watch_filter or SourceFilter()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            logger.warning("Watcher already running, restarting it")
            await self.stop()

        logger.info("Watching %s (debounce %d ms)", self.watch_dir, self.pipeline.debounce_ms)
        self.pipeline.start()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))

    async def stop(self) -> None:
        if self._task is None:
            self.pipeline.stop()
            return
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Watcher did not stop in time; cancelled")
        self._task = None
        self._stop_event = None
        self.pipeline.stop()
        logger.info("Watcher stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        try:
            async for changes in awatch(self.watch_dir, watch_filter=self.watch_filter, stop_event=stop_event):
                for change, raw_path in changes:
                    self._forward(change, raw_path)
        except Exception:
            logger.exception("Watcher error on %s", self.watch_dir)

    def _forward(self, change: Change, raw_path: str) -> None:
        kind = _KINDS.get(change)
        if kind is None:
            return
        # One bad path must not end the watch loop.
        try:
            self.pipeline.notify(kind, raw_path)
        except Exception:
            logger.exception("Dropping %s notification for %s", kind, raw_path)

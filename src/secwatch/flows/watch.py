from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from secwatch.config import Settings
from secwatch.contracts import FIX_COMPLETE, FIX_ERROR, SCAN_RESULT, FileChangeEvent, FixPayload, FixResponse
from secwatch.engine import ScanEngine, build_engine
from secwatch.pipeline import DebouncedChangePipeline
from secwatch.tools.fixer import FixApplier
from secwatch.watcher import FileWatcher

logger = logging.getLogger(__name__)

Broadcast = Callable[[str, Dict[str, Any]], Awaitable[None]]


class WatchSession:
    """Wires watcher -> pipeline -> engine -> clients, and fix requests -> applier."""

    def __init__(
        self,
        settings: Settings,
        engine: Optional[ScanEngine] = None,
        applier: Optional[FixApplier] = None,
        broadcast: Optional[Broadcast] = None,
    ):
        self.settings = settings
        self.engine = engine or build_engine(settings.disabled_rules)
        self.applier = applier or FixApplier()
        self.pipeline = DebouncedChangePipeline(settings.debounce_ms, max_bytes=settings.max_file_bytes)
        self.watcher = FileWatcher(settings.watch_dir, self.pipeline)
        self.broadcast = broadcast
        self.pipeline.add_listener(self.on_file_change)

    @property
    def watch_dir(self) -> str:
        return str(self.watcher.watch_dir)

    async def start(self) -> None:
        await self.watcher.start()

    async def stop(self) -> None:
        await self.watcher.stop()

    async def on_file_change(self, event: FileChangeEvent) -> None:
        if event.kind == "removed":
            logger.info("File deleted: %s", event.file_path)
            return
        if event.content is None:
            logger.info("No content for file: %s", event.file_path)
            return

        result = self.engine.scan(event.content, event.file_path)
        if not result.alerts:
            return
        logger.info("Emitting %d alert(s) for %s", len(result.alerts), event.file_path)
        if self.broadcast is not None:
            await self.broadcast(SCAN_RESULT, result.model_dump(by_alias=True))

    async def handle_fix(self, payload: FixPayload) -> Tuple[str, FixResponse]:
        logger.info("Fix request received for %s", payload.file_path)
        response = await self.applier.apply_fix(payload)
        return (FIX_COMPLETE if response.success else FIX_ERROR), response

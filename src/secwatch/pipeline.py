from __future__ import annotations

import asyncio
import inspect
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Union

from secwatch.contracts import ChangeKind, FileChangeEvent
from secwatch.tools.files import read_text

logger = logging.getLogger(__name__)

Listener = Callable[[FileChangeEvent], Union[None, Awaitable[None]]]

DEFAULT_DEBOUNCE_MS = 500


def canonical_path(path: Union[str, Path]) -> str:
    try:
        return str(Path(path).resolve())
    except (OSError, RuntimeError) as exc:
        # Symlink loops raise here on older interpreters; the read will drop them.
        logger.debug("Could not resolve %s: %s", path, exc)
        return os.path.abspath(path)


class DebouncedChangePipeline:
    """Coalesces bursts of raw notifications into one event per path.

    Each path is Idle or Pending. A notification for a pending path cancels its
    timer and re-arms it with the latest kind, so only the trailing
    notification of a burst survives. When a timer fires its entry is removed
    before the file is read, keeping the map bounded to paths in flight.
    """

    def __init__(self, debounce_ms: int = DEFAULT_DEBOUNCE_MS, max_bytes: Optional[int] = None):
        self.debounce_ms = debounce_ms
        self.max_bytes = max_bytes
        self._pending: Dict[str, asyncio.TimerHandle] = {}
        self._delivering: Dict[str, asyncio.Task] = {}
        self._listeners: List[Listener] = []
        self._stopped = False
        self._idle = asyncio.Event()
        self._idle.set()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def pending_paths(self) -> List[str]:
        return list(self._pending)

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        self._stopped = False

    def notify(self, kind: ChangeKind, path: Union[str, Path]) -> None:
        if self._stopped:
            logger.debug("Pipeline stopped; ignoring %s for %s", kind, path)
            return
        key = canonical_path(path)
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._pending[key] = loop.call_later(self.debounce_ms / 1000, self._fire, key, kind)
        self._idle.clear()

    def stop(self) -> None:
        """Cancel every outstanding timer and in-flight read; nothing fires afterwards."""
        self._stopped = True
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        for task in self._delivering.values():
            task.cancel()
        self._delivering.clear()
        self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def _fire(self, key: str, kind: ChangeKind) -> None:
        self._pending.pop(key, None)
        previous = self._delivering.get(key)
        task = asyncio.ensure_future(self._emit(key, kind, previous))
        self._delivering[key] = task
        task.add_done_callback(lambda done, key=key: self._finished(key, done))

    def _finished(self, key: str, task: asyncio.Task) -> None:
        if self._delivering.get(key) is task:
            del self._delivering[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Unexpected error emitting %s", key, exc_info=task.exception())
        if not self._pending and not self._delivering:
            self._idle.set()

    async def _emit(self, key: str, kind: ChangeKind, previous: Optional[asyncio.Task]) -> None:
        event = FileChangeEvent(kind=kind, file_path=key)
        if kind != "removed":
            content = await self._read(Path(key))
            if content is None:
                return
            event = FileChangeEvent(kind=kind, file_path=key, content=content)

        # Same-path events go out in the order their timers fired.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        logger.info("File %s: %s", kind, key)
        await self._deliver(event)

    async def _read(self, path: Path) -> Optional[str]:
        try:
            if self.max_bytes is not None:
                size = (await asyncio.to_thread(path.stat)).st_size
                if size > self.max_bytes:
                    logger.info("Skipping %s: %d bytes exceeds limit of %d", path, size, self.max_bytes)
                    return None
            return await asyncio.to_thread(read_text, path)
        except FileNotFoundError:
            # Deleted between the notification and the read.
            logger.debug("File no longer exists: %s", path)
        except PermissionError:
            logger.error("Permission denied reading file: %s", path)
        except IsADirectoryError:
            logger.debug("Ignoring directory event: %s", path)
        except UnicodeDecodeError:
            logger.warning("Skipping non UTF-8 file: %s", path)
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
        return None

    async def _deliver(self, event: FileChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in file change listener for %s", event.file_path)

"""File system watcher for the allow-list store.

Lets hand edits and focusctl mutations reach the daemon even when no reload
tick is sent. Watches the store's directory rather than the file because
atomic saves (temp file + rename) replace the inode.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import WATCH_DEBOUNCE_MS

logger = logging.getLogger(__name__)


class DebouncedReloadHandler(FileSystemEventHandler):
    """File system event handler with a debounced reload callback.

    Watchdog delivers events on its observer thread; callbacks are marshalled
    onto the asyncio loop before anything else happens.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        target_filename: str,
        debounce_ms: int = WATCH_DEBOUNCE_MS,
    ):
        """Initialize debounced reload handler.

        Args:
            callback: Function to call after the debounce period
            target_filename: Only events for this file name trigger the callback
            debounce_ms: Debounce timeout in milliseconds
        """
        super().__init__()
        self.callback = callback
        self.target_filename = target_filename
        self.debounce_seconds = debounce_ms / 1000
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def _should_trigger(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        event_path = getattr(event, "dest_path", None) or event.src_path
        return Path(event_path).name == self.target_filename

    def _schedule_callback(self) -> None:
        """Restart the debounce timer (runs on the event loop)."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._debounce_handle = None
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Reload callback failed: {e}", exc_info=True)

    def _dispatch(self, event: FileSystemEvent) -> None:
        if not self._should_trigger(event):
            return
        if self._loop is None:
            logger.warning("No event loop set for debounced handler, calling immediately")
            self._fire()
            return
        self._loop.call_soon_threadsafe(self._schedule_callback)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._dispatch(event)

    def on_created(self, event: FileSystemEvent) -> None:
        self._dispatch(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Atomic saves arrive as a rename onto the store file."""
        self._dispatch(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._dispatch(event)


class AllowListWatcher:
    """Watches the store file and calls ``reload_callback`` on changes."""

    def __init__(
        self,
        store_path: Path,
        reload_callback: Callable[[], None],
        debounce_ms: int = WATCH_DEBOUNCE_MS,
    ):
        self.store_path = store_path
        self.handler = DebouncedReloadHandler(reload_callback, store_path.name, debounce_ms)
        self.observer: Optional[Observer] = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.handler.set_event_loop(loop)

    @property
    def running(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        if self.running:
            logger.warning("Allow-list watcher already started")
            return

        watch_dir = self.store_path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.observer = Observer()
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        logger.info(f"Started watching {self.store_path} for modifications")

    def stop(self) -> None:
        if not self.running:
            return
        self.observer.stop()
        self.observer.join(timeout=5.0)
        self.observer = None
        logger.info(f"Stopped watching {self.store_path}")

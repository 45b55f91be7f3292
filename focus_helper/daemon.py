"""
Focus helper daemon.

Connects to Sway/i3 IPC, feeds window lifecycle events into the
FocusEngine, and reloads the allow-list on a ``focus-helper:reload`` tick,
on SIGHUP, or when the store file changes.
"""
# Module can be run with: python -m focus_helper.daemon

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path
from typing import Optional, Sequence

from i3ipc import Event, TickEvent, WindowEvent
from i3ipc.aio import Connection

from .constants import DEFAULT_ATTEMPT_DELAYS, RELOAD_TICK_PAYLOAD
from .engine import FocusEngine
from .host import SwayWindowHost
from .logging_config import set_debug, setup_daemon_logging
from .models import AllowListSnapshot
from .scheduler import AsyncioScheduler
from .store import AllowListStore
from .watcher import AllowListWatcher

logger = logging.getLogger(__name__)


class FocusHelperDaemon:
    """Long-running focus enforcement daemon."""

    def __init__(
        self,
        store: Optional[AllowListStore] = None,
        delays: Sequence[float] = DEFAULT_ATTEMPT_DELAYS,
        watch: bool = True,
        debug: bool = False,
    ):
        """
        Initialize the daemon.

        Args:
            store: Allow-list store (default location if None)
            delays: Retry ladder for enforcement attempts, in seconds
            watch: Watch the store file for changes
            debug: Force DEBUG logging regardless of the stored flag
        """
        self.store = store or AllowListStore()
        self.delays = tuple(delays)
        self.watch = watch
        self.debug = debug
        self.conn: Optional[Connection] = None
        self.engine: Optional[FocusEngine] = None
        self.scheduler: Optional[AsyncioScheduler] = None
        self.watcher: Optional[AllowListWatcher] = None
        self.running = False
        self.reconnect_delay = 0.1

    async def connect_with_retry(self, max_attempts: int = 10) -> Connection:
        """Connect to the window manager with exponential backoff.

        Raises:
            ConnectionError: If connection fails after max attempts
        """
        delay = self.reconnect_delay
        for attempt in range(1, max_attempts + 1):
            try:
                logger.info(f"Attempting to connect to window manager (attempt {attempt}/{max_attempts})")
                conn = await Connection(auto_reconnect=True).connect()
                version = await conn.get_version()
                logger.info(f"Connected to {version.human_readable}")
                return conn
            except Exception as e:
                logger.warning(f"Connection attempt {attempt} failed: {e}")
                if attempt < max_attempts:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 5.0)

        raise ConnectionError(f"Failed to connect to window manager after {max_attempts} attempts")

    def attach(self, conn: Connection) -> FocusEngine:
        """Build the engine on a connection and register event handlers."""
        self.conn = conn
        self.scheduler = AsyncioScheduler()
        self.engine = FocusEngine(
            host=SwayWindowHost(conn),
            scheduler=self.scheduler,
            # Strict, so a corrupt store keeps the previous snapshot
            loader=partial(self.store.read_config, strict=True),
            delays=self.delays,
        )
        self.engine.on_reload = self._apply_log_level
        self.engine.reload()

        conn.on(Event.WINDOW_NEW, self._on_window_new)
        conn.on(Event.WINDOW_FOCUS, self._on_window_focus)
        conn.on(Event.WINDOW_CLOSE, self._on_window_close)
        conn.on(Event.TICK, self._on_tick)
        return self.engine

    async def start(self) -> None:
        """Connect, subscribe and run until stopped."""
        logger.info("Starting focus helper daemon")

        conn = await self.connect_with_retry()
        self.attach(conn)
        # Subscribe before main() so no window::new slips past the handlers
        await conn.subscribe([Event.WINDOW, Event.TICK])

        loop = asyncio.get_running_loop()
        if self.watch:
            self.watcher = AllowListWatcher(self.store.path, self.reload)
            self.watcher.set_event_loop(loop)
            self.watcher.start()

        self.running = True
        logger.info(f"Watching window events (store: {self.store.path})")

        try:
            await self.conn.main()
        except asyncio.CancelledError:
            logger.info("Event loop cancelled")

    async def stop(self) -> None:
        """Stop the daemon."""
        logger.info("Stopping daemon...")
        self.running = False

        if self.watcher:
            self.watcher.stop()
        if self.scheduler:
            self.scheduler.cancel_all()
        if self.conn:
            self.conn.main_quit()

        logger.info("Daemon stopped")

    def reload(self) -> Optional[AllowListSnapshot]:
        if self.engine is None:
            return None
        return self.engine.reload()

    def _apply_log_level(self, snapshot: AllowListSnapshot) -> None:
        set_debug(self.debug or snapshot.debug)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_window_new(self, conn: Connection, event: WindowEvent) -> None:
        try:
            self.engine.on_window_added(event.container)
        except Exception as e:
            logger.error(f"Error handling window::new event: {e}", exc_info=True)

    async def _on_window_focus(self, conn: Connection, event: WindowEvent) -> None:
        try:
            await self.engine.on_window_activated(event.container)
        except Exception as e:
            logger.error(f"Error handling window::focus event: {e}", exc_info=True)

    async def _on_window_close(self, conn: Connection, event: WindowEvent) -> None:
        try:
            self.engine.on_window_closed(event.container)
        except Exception as e:
            logger.error(f"Error handling window::close event: {e}", exc_info=True)

    async def _on_tick(self, conn: Connection, event: TickEvent) -> None:
        if event.first or event.payload != RELOAD_TICK_PAYLOAD:
            return
        logger.debug(f"Received tick event: {event.payload}")
        self.reload()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="focus-helper-daemon",
        description="Force allow-listed window classes to the foreground on Sway/i3.",
    )
    parser.add_argument("--config-dir", type=Path, help="Directory holding focus-helper.json")
    parser.add_argument("--no-watch", action="store_true", help="Do not watch the store file")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_daemon_logging(debug=args.debug)

    daemon = FocusHelperDaemon(
        store=AllowListStore(args.config_dir),
        watch=not args.no_watch,
        debug=args.debug,
    )

    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(daemon.stop())

    def reload_handler():
        logger.info("Received SIGHUP, reloading allow-list")
        daemon.reload()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_handler)
    loop.add_signal_handler(signal.SIGHUP, reload_handler)

    try:
        await daemon.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

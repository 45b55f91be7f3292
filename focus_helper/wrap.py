"""Scoped wrap: admit a class for exactly the lifetime of one child process.

``ScopedWrap.run`` adds the class to the allow-list (unless it was already
there), launches the command with inherited stdio, waits for it, and then
removes the class again on every exit path: normal exit, non-zero exit,
spawn failure, or SIGINT/SIGTERM/SIGHUP delivered to the wrapper. A class that
was already present before the call is never touched, so wraps nest safely.
Admission also turns the master switch on (and leaves it on) unless the
caller opts out.
"""

import logging
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .class_key import class_from_command, normalize
from .constants import CHILD_TERMINATE_TIMEOUT, SPAWN_FAILURE_EXIT_CODE
from .errors import InvalidClassError, SpawnError
from .models import ReconfigureResult, WrapSession
from .reconfigure import request_reload
from .store import AllowListStore

logger = logging.getLogger(__name__)

TRAPPED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

Notifier = Callable[[], ReconfigureResult]


class WrapInterrupted(Exception):
    """The wrapper received a termination signal while the child was running."""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"interrupted by signal {signum}")


class SignalTrap:
    """Turns termination signals into WrapInterrupted, but only while armed.

    Outside the armed window (admission, cleanup) signals are only recorded,
    so they can never cut the store update short. Only the first signal
    raises; later ones are recorded and ignored.
    """

    def __init__(self, signals: Sequence[int] = TRAPPED_SIGNALS):
        self.signals = tuple(signals)
        self.received: Optional[int] = None
        self._armed = False
        self._previous: Dict[int, object] = {}

    def _handle(self, signum, frame) -> None:
        if self.received is not None:
            logger.debug(f"Ignoring repeated signal {signum} during wrap")
            return
        self.received = signum
        if self._armed:
            raise WrapInterrupted(signum)

    def __enter__(self) -> "SignalTrap":
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal trap disabled")
            return self
        for signum in self.signals:
            self._previous[signum] = signal.signal(signum, self._handle)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._armed = False
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()

    @contextmanager
    def armed(self) -> Iterator[None]:
        if self.received is not None:
            raise WrapInterrupted(self.received)
        self._armed = True
        try:
            yield
        finally:
            self._armed = False


def exit_code_from_returncode(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit code (signal N -> 128+N)."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def resolve_wrap_class(class_name: Optional[str], command: Sequence[str], auto: bool = False) -> str:
    """Pick the class key for a wrap: explicit name, or derived from argv[0].

    Raises:
        InvalidClassError: If the resulting key is empty
    """
    if auto or not class_name:
        if not command:
            raise InvalidClassError("")
        key = class_from_command(command[0])
        raw = command[0]
    else:
        key = normalize(class_name)
        raw = class_name
    if not key:
        raise InvalidClassError(raw)
    return key


class ScopedWrap:
    """Runs commands with a temporarily admitted window class."""

    def __init__(
        self,
        store: AllowListStore,
        notifier: Optional[Notifier] = request_reload,
        persist: bool = False,
        enable: bool = True,
        terminate_timeout: float = CHILD_TERMINATE_TIMEOUT,
    ):
        """Initialize the wrapper.

        Args:
            store: Allow-list store to mutate
            notifier: Best-effort reload signal, or None to skip signalling
            persist: Keep the class admitted after the child exits
            enable: Turn the master switch on when admitting (it stays on)
            terminate_timeout: Seconds to wait for an interrupted child before SIGKILL
        """
        self.store = store
        self.notifier = notifier
        self.persist = persist
        self.enable = enable
        self.terminate_timeout = terminate_timeout

    def run(self, class_key: str, command: List[str]) -> int:
        """Admit ``class_key``, run ``command``, and release the class again.

        Returns:
            The child's exit code, 128+N if the child or the wrapper was
            terminated by signal N, or 127 if the child could not be started

        Raises:
            InvalidClassError: If ``class_key`` normalizes to the empty key
            ConfigIOError: If the class cannot be admitted (nothing is
                launched) or cannot be released afterward
        """
        key = normalize(class_key)
        if not key:
            raise InvalidClassError(class_key)
        if not command:
            raise ValueError("wrap requires a command")

        session = WrapSession(class_key=key, command=list(command))

        with SignalTrap() as trap:
            switch_on = self.enable and not self.store.read_config().enabled
            session.was_present = not self.store.add(key, enable=self.enable)
            try:
                if not session.was_present:
                    logger.info(f"Temporarily admitted {key}")
                if not session.was_present or switch_on:
                    self._notify()
                session.exit_code = self._run_child(session, trap)
            finally:
                self._release(session)

            if trap.received is not None and session.interrupted_by is None:
                # Signal arrived outside the armed window (admission or cleanup)
                session.interrupted_by = trap.received
                session.exit_code = 128 + trap.received

        logger.debug(f"Wrap finished: {session}")
        return session.exit_code

    def _run_child(self, session: WrapSession, trap: SignalTrap) -> int:
        if trap.received is not None:
            logger.warning(f"Signal {trap.received} received before launch; not starting child")
            return 128 + trap.received

        try:
            process = subprocess.Popen(session.command)
        except OSError as e:
            error = SpawnError(session.command[0], e.strerror or str(e))
            logger.error(f"{error.message}. {error.suggestion}")
            return SPAWN_FAILURE_EXIT_CODE

        session.process = process
        logger.debug(f"Started pid {process.pid}: {session.command}")

        try:
            with trap.armed():
                returncode = process.wait()
        except WrapInterrupted as e:
            session.interrupted_by = e.signum
            logger.warning(f"Received signal {e.signum}; stopping child {process.pid}")
            self._stop_child(process, e.signum)
            return 128 + e.signum

        return exit_code_from_returncode(returncode)

    def _stop_child(self, process: subprocess.Popen, signum: int) -> None:
        if process.poll() is None:
            try:
                process.send_signal(signum)
            except ProcessLookupError:
                return
        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Child {process.pid} ignored signal {signum}; killing")
            process.kill()
            process.wait()

    def _release(self, session: WrapSession) -> None:
        if session.was_present:
            logger.debug(f"{session.class_key} was already allow-listed; leaving it")
            return
        if self.persist:
            logger.info(f"Keeping {session.class_key} admitted (--persist)")
            return
        self.store.remove(session.class_key)
        logger.info(f"Released {session.class_key}")
        self._notify()

    def _notify(self) -> Optional[ReconfigureResult]:
        if self.notifier is None:
            return None
        try:
            return self.notifier()
        except Exception as e:
            logger.warning(f"Reload signal failed: {e}")
            return None

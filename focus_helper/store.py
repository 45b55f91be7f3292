"""Allow-list store.

Persists the focus helper settings (allow-list, mode, flags) as a JSON file
shared by the long-running daemon and any number of short-lived focusctl
processes.

Mutations take an exclusive ``flock`` on a sidecar lock file for the whole
read-modify-write sequence, and every write is a temp file + fsync + rename
in the same directory, so readers never need the lock and never observe a
partially written file.
"""

import errno
import fcntl
import json
import logging
import os
import stat
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from pydantic import ValidationError
from xdg.BaseDirectory import xdg_data_home

from .class_key import normalize
from .constants import (
    APP_NAME,
    BASE_DIR_ENV,
    CONFIG_FILENAME,
    DEFAULT_LOCK_TIMEOUT,
    LOCK_POLL_INTERVAL,
    LOCK_SUFFIX,
)
from .errors import ConfigIOError, ErrorCode, InvalidClassError, LockContentionError
from .logging_config import log_timing
from .models import AllowList, FocusHelperConfig, FocusMode

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644


def resolve_base_dir(override: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the directory holding the store.

    Priority:
    1) explicit override (``--config-dir``)
    2) ``$FOCUS_HELPER_DIR``
    3) ``$XDG_DATA_HOME/focus-helper`` (``~/.local/share/focus-helper``)
    """
    if override:
        return Path(override).expanduser()
    env_dir = os.environ.get(BASE_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path(xdg_data_home) / APP_NAME


class AllowListStore:
    """File-backed allow-list with lock-safe, atomic mutation."""

    def __init__(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        """Initialize the store.

        Args:
            base_dir: Directory for the store file (resolved if None)
            lock_timeout: Seconds to wait for the exclusive lock before failing
        """
        self.base_dir = resolve_base_dir(base_dir)
        self.path = self.base_dir / CONFIG_FILENAME
        self.lock_path = self.base_dir / (CONFIG_FILENAME + LOCK_SUFFIX)
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_config(self, strict: bool = False) -> FocusHelperConfig:
        """Read the stored settings.

        A missing file yields defaults (nothing configured yet).

        Args:
            strict: Raise ConfigIOError on unreadable or corrupt content
                instead of tolerating it as empty

        Raises:
            ConfigIOError: Only when ``strict`` and the file cannot be parsed
        """
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")
            return FocusHelperConfig.model_validate(data)
        except FileNotFoundError:
            logger.debug(f"Store file does not exist yet: {self.path}")
            return FocusHelperConfig()
        except (OSError, ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            if strict:
                raise ConfigIOError(
                    str(self.path),
                    f"cannot read store: {e}",
                    code=ErrorCode.CONFIG_LOAD_FAILED,
                    suggestion="Fix or delete the store file, then retry"
                ) from e
            logger.warning(f"Ignoring unreadable store {self.path}: {e}")
            return FocusHelperConfig()

    def load(self) -> AllowList:
        """Return the current allow-list (empty if unconfigured or unreadable)."""
        return self.read_config().allow_list()

    def list(self) -> List[str]:
        """Return class keys in stored order."""
        return self.load().keys

    def contains(self, raw: str) -> bool:
        return normalize(raw) in self.load()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def save(self, allow_list: AllowList) -> None:
        """Replace the stored allow-list, keeping the other settings.

        Raises:
            ConfigIOError: If the store cannot be locked, read or written
        """
        self._mutate(lambda config: config.with_allow_list(allow_list))

    def add(self, raw: str, enable: bool = False) -> bool:
        """Admit a class.

        Args:
            raw: Class name (normalized before storing)
            enable: Also turn the master switch on, in the same locked update

        Returns:
            True if the class was newly inserted, False if already present

        Raises:
            InvalidClassError: If ``raw`` normalizes to the empty key
            ConfigIOError: If the store cannot be locked, read or written
        """
        key = self._require_key(raw)
        inserted = False

        def apply(config: FocusHelperConfig) -> Optional[FocusHelperConfig]:
            nonlocal inserted
            allow_list = config.allow_list()
            inserted = allow_list.add(key)
            switch_on = enable and not config.enabled
            if not inserted and not switch_on:
                return None
            updated = config.with_allow_list(allow_list)
            if switch_on:
                logger.info("Enabling focus helper")
                updated = updated.model_copy(update={"enabled": True})
            return updated

        with log_timing(f"add {key}", logger):
            self._mutate(apply)
        logger.info(f"{'Added' if inserted else 'Already present'}: {key}")
        return inserted

    def remove(self, raw: str) -> bool:
        """Drop a class.

        Returns:
            True if the class was present, False otherwise

        Raises:
            InvalidClassError: If ``raw`` normalizes to the empty key
            ConfigIOError: If the store cannot be locked, read or written
        """
        key = self._require_key(raw)
        removed = False

        def apply(config: FocusHelperConfig) -> Optional[FocusHelperConfig]:
            nonlocal removed
            allow_list = config.allow_list()
            removed = allow_list.discard(key)
            return config.with_allow_list(allow_list) if removed else None

        with log_timing(f"remove {key}", logger):
            self._mutate(apply)
        logger.info(f"{'Removed' if removed else 'Not present'}: {key}")
        return removed

    def set_classes(self, keys: List[str]) -> List[str]:
        """Replace the allow-list wholesale; returns the stored keys."""
        allow_list = AllowList(keys)
        self.save(allow_list)
        return allow_list.keys

    def clear(self) -> None:
        self.save(AllowList())

    def set_enabled(self, enabled: bool) -> None:
        self._mutate(lambda config: config.model_copy(update={"enabled": enabled}))

    def set_mode(self, mode: FocusMode) -> None:
        self._mutate(lambda config: config.model_copy(update={"mode": mode}))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _require_key(raw: str) -> str:
        key = normalize(raw)
        if not key:
            raise InvalidClassError(raw)
        return key

    def _mutate(
        self, apply: Callable[[FocusHelperConfig], Optional[FocusHelperConfig]]
    ) -> None:
        """Run a read-modify-write cycle under the exclusive lock.

        ``apply`` receives the current settings and returns the new settings,
        or None when nothing changed (the file is then left untouched).
        """
        with self.locked():
            current = self.read_config(strict=True)
            updated = apply(current)
            if updated is not None:
                self._write(updated)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the exclusive store lock, waiting up to ``lock_timeout``.

        Raises:
            LockContentionError: If the lock is still held after the timeout
            ConfigIOError: If the lock file cannot be opened
        """
        self._ensure_dir()
        try:
            lock_fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise ConfigIOError(str(self.lock_path), f"cannot open lock file: {e}") from e

        try:
            deadline = time.monotonic() + self.lock_timeout
            while True:
                try:
                    fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError as e:
                    if e.errno not in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                        raise ConfigIOError(str(self.lock_path), f"cannot lock: {e}") from e
                    if time.monotonic() >= deadline:
                        raise LockContentionError(str(self.lock_path), self.lock_timeout)
                    time.sleep(LOCK_POLL_INTERVAL)
            try:
                yield
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(lock_fd)

    def _ensure_dir(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigIOError(
                str(self.base_dir),
                f"cannot create store directory: {e}",
                code=ErrorCode.PERMISSION_DENIED
            ) from e

    def _file_mode(self) -> int:
        try:
            return stat.S_IMODE(os.stat(self.path).st_mode)
        except FileNotFoundError:
            return DEFAULT_FILE_MODE

    def _write(self, config: FocusHelperConfig) -> None:
        """Atomically write settings (temp file in the same dir + rename)."""
        data = config.model_dump(mode="json")

        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.base_dir, prefix=".focus-helper-", suffix=".json"
            )
        except OSError as e:
            raise ConfigIOError(str(self.path), f"cannot create temp file: {e}") from e

        try:
            with os.fdopen(fd, "w") as f:
                # mkstemp creates 0600; keep the existing file's mode instead
                os.fchmod(f.fileno(), self._file_mode())
                json.dump(data, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, self.path)
            logger.debug(f"Saved store: {self.path}")

        except OSError as e:
            if Path(temp_path).exists():
                os.unlink(temp_path)
            raise ConfigIOError(str(self.path), f"write failed: {e}") from e

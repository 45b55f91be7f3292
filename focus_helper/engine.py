"""Focus enforcement engine.

Reacts to window lifecycle events and forces allow-listed windows to the
foreground without touching the window manager's global focus policy.

Per event the flow is Idle -> Matched -> Scheduled -> Applied | Suppressed:

- window added: if the window's class is allow-listed, schedule a short
  ladder of attempts (immediately, then twice more) so the forced focus wins
  against the window manager re-stealing focus right after creation. Each
  attempt re-checks the window and issues raise, then activate.
- window activated: if allow-listed, raise only (stacking correction; the
  window already has focus).

The engine never raises out of an event handler. Any failing window manager
call degrades that single step to a no-op.
"""

import logging
from functools import partial
from typing import Any, Callable, Hashable, Optional, Sequence, Set

from .class_key import normalize
from .constants import DEFAULT_ATTEMPT_DELAYS
from .host import WindowHost
from .models import (
    AllowListSnapshot,
    AttemptOutcome,
    EnforcementAttempt,
    FocusHelperConfig,
    FocusMode,
)
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], FocusHelperConfig]


class FocusEngine:
    """Allow-list matcher and focus enforcer for window lifecycle events."""

    def __init__(
        self,
        host: WindowHost,
        scheduler: Scheduler,
        loader: ConfigLoader,
        delays: Sequence[float] = DEFAULT_ATTEMPT_DELAYS,
    ):
        """Initialize the engine.

        Args:
            host: Window manager boundary
            scheduler: Timer source for the retry ladder
            loader: Returns current settings; called on every reload
            delays: Retry ladder in seconds, first entry usually 0
        """
        self.host = host
        self.scheduler = scheduler
        self.loader = loader
        self.delays = tuple(delays)
        self._snapshot = AllowListSnapshot()
        self._scheduled: Set[Hashable] = set()
        self.on_reload: Optional[Callable[[AllowListSnapshot], None]] = None

    # ------------------------------------------------------------------
    # Snapshot cell
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> AllowListSnapshot:
        return self._snapshot

    def reload(self) -> AllowListSnapshot:
        """Replace the cached settings wholesale from the loader.

        On a loader failure the previous snapshot is retained.
        """
        try:
            config = self.loader()
        except Exception as e:
            logger.error(f"Failed to reload allow-list, keeping previous: {e}")
            return self._snapshot

        self._snapshot = AllowListSnapshot.from_config(config)
        logger.info(
            f"Config reloaded: forced=[{', '.join(self._snapshot.ordered)}], "
            f"mode={self._snapshot.mode.value}, enabled={self._snapshot.enabled}"
        )
        if self.on_reload is not None:
            self.on_reload(self._snapshot)
        return self._snapshot

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def class_key_for(self, window: Any) -> str:
        """Best available class key: first non-empty candidate, or ''."""
        try:
            candidates = self.host.candidate_classes(window)
        except Exception as e:
            logger.debug(f"Cannot read window classes: {e}")
            return ""
        for raw in candidates:
            key = normalize(raw)
            if key:
                return key
        return ""

    def match(self, window: Any) -> str:
        """Return the matched class key, or '' if the window is not forced."""
        if window is None or not self._snapshot.active:
            return ""
        key = self.class_key_for(window)
        return key if key in self._snapshot.keys else ""

    def _identity(self, window: Any) -> Optional[Hashable]:
        try:
            return self.host.window_identity(window)
        except Exception as e:
            logger.debug(f"Cannot read window identity: {e}")
            return None

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def on_window_added(self, window: Any, reason: str = "window::new") -> Optional[EnforcementAttempt]:
        """Schedule the attempt ladder for a newly created forced window.

        Returns:
            The scheduled attempt, or None if the window was not matched or
            already has a ladder
        """
        key = self.match(window)
        if not key:
            return None

        identity = self._identity(window)
        if identity is not None:
            if identity in self._scheduled:
                logger.debug(f"Already scheduled: {key} (window {identity})")
                return None
            self._scheduled.add(identity)

        attempt = EnforcementAttempt(window=window, class_key=key, reason=reason, delays=self.delays)
        logger.debug(f"Scheduling {len(self.delays)} attempts for {key} (window {identity})")

        for index, delay in enumerate(attempt.delays):
            self.scheduler.call_later(delay, partial(self.run_attempt, attempt, index))

        return attempt

    async def on_window_activated(self, window: Any) -> bool:
        """Raise a forced window that just became active.

        Returns:
            True if a raise was issued
        """
        key = self.match(window)
        if not key:
            return False
        logger.debug(f"Activated forced window {key}: raise only")
        return await self._raise(window, key)

    def on_window_closed(self, window: Any) -> None:
        """Forget the dedup marker for a destroyed window."""
        identity = self._identity(window)
        if identity is not None:
            self._scheduled.discard(identity)

    def is_scheduled(self, window: Any) -> bool:
        identity = self._identity(window)
        return identity is not None and identity in self._scheduled

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def run_attempt(self, attempt: EnforcementAttempt, index: int = 0) -> AttemptOutcome:
        """Run one rung of the ladder: re-check the window, then apply."""
        outcome = await self._apply(attempt, attempt.tag(index))
        attempt.outcomes.append(outcome)
        return outcome

    async def _apply(self, attempt: EnforcementAttempt, tag: str) -> AttemptOutcome:
        window = attempt.window
        key = attempt.class_key

        # Settings may have changed since the ladder was scheduled
        if not self.match(window):
            logger.debug(f"skip (no longer forced): {key} ({tag})")
            return AttemptOutcome.SUPPRESSED

        try:
            state = await self.host.window_state(window)
        except Exception as e:
            logger.debug(f"skip (state unavailable): {key} ({tag}): {e}")
            return AttemptOutcome.SUPPRESSED

        if not state.eligible:
            logger.debug(
                f"skip (ineligible: deleted={state.deleted}, minimized={state.minimized}, "
                f"wants_input={state.wants_input}): {key} ({tag})"
            )
            return AttemptOutcome.SUPPRESSED

        if state.active:
            logger.debug(f"skip (already active): {key} ({tag})")
            return AttemptOutcome.SUPPRESSED

        mode = self._snapshot.mode
        logger.info(f"apply {mode.value}: class={key} ({tag})")

        await self._raise(window, key)
        if mode == FocusMode.ACTIVATE:
            await self._activate(window, key)
        return AttemptOutcome.APPLIED

    async def _raise(self, window: Any, key: str) -> bool:
        try:
            await self.host.raise_window(window)
            return True
        except Exception as e:
            logger.warning(f"raise failed for {key}: {e}")
            return False

    async def _activate(self, window: Any, key: str) -> bool:
        try:
            await self.host.activate_window(window)
            return True
        except Exception as e:
            logger.warning(f"activate failed for {key}: {e}")
            return False

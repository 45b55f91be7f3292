"""Best-effort reload signal from the control surface to the daemon.

The daemon listens for a tick event carrying ``focus-helper:reload``. Sending
it is never fatal: every failure is folded into a ReconfigureResult that the
caller logs or prints.
"""

import logging
import shutil
import subprocess

import i3ipc

from .constants import RELOAD_TICK_PAYLOAD
from .logging_config import log_subprocess_call
from .models import ReconfigureResult

logger = logging.getLogger(__name__)

# Command-line fallbacks tried in order when the IPC library cannot connect
FALLBACK_COMMANDS = (
    ("swaymsg", ["-t", "send_tick"]),
    ("i3-msg", ["-t", "send_tick"]),
)


def _send_via_ipc(payload: str) -> ReconfigureResult:
    try:
        conn = i3ipc.Connection()
        reply = conn.send_tick(payload)
    except Exception as e:
        return ReconfigureResult(success=False, method="i3ipc", error=str(e))
    if not getattr(reply, "success", False):
        return ReconfigureResult(success=False, method="i3ipc", error="tick rejected")
    return ReconfigureResult(success=True, method="i3ipc")


def _send_via_cli(payload: str) -> ReconfigureResult:
    errors = []
    for program, args in FALLBACK_COMMANDS:
        path = shutil.which(program)
        if path is None:
            errors.append(f"{program} not found")
            continue
        cmd = [path, *args, payload]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
        except (OSError, subprocess.TimeoutExpired) as e:
            errors.append(f"{program}: {e}")
            continue
        log_subprocess_call(cmd, result, logger)
        if result.returncode == 0:
            return ReconfigureResult(success=True, method=program)
        errors.append(f"{program} exited {result.returncode}")
    return ReconfigureResult(success=False, error="; ".join(errors))


def request_reload(payload: str = RELOAD_TICK_PAYLOAD) -> ReconfigureResult:
    """Ask a running daemon to re-read the allow-list.

    Tries the IPC library first, then ``swaymsg``/``i3-msg``.

    Returns:
        ReconfigureResult describing what happened (never raises)
    """
    result = _send_via_ipc(payload)
    if not result.success:
        logger.debug(f"IPC tick failed ({result.error}), trying command-line fallbacks")
        fallback = _send_via_cli(payload)
        if fallback.success or not fallback.error:
            result = fallback
        else:
            result = ReconfigureResult(
                success=False,
                error=f"i3ipc: {result.error}; {fallback.error}"
            )

    if result.success:
        logger.info(result.describe())
    else:
        logger.warning(result.describe())
    return result

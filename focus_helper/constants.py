"""Shared constants for the focus helper daemon and CLI."""

APP_NAME = "focus-helper"

# Store
CONFIG_FILENAME = "focus-helper.json"
LOCK_SUFFIX = ".lock"
BASE_DIR_ENV = "FOCUS_HELPER_DIR"
DEFAULT_LOCK_TIMEOUT = 5.0  # seconds
LOCK_POLL_INTERVAL = 0.05  # seconds

# Engine
DEFAULT_ATTEMPT_DELAYS = (0.0, 0.06, 0.18)  # seconds
RELOAD_TICK_PAYLOAD = "focus-helper:reload"
SCRATCHPAD_WORKSPACE = "__i3_scratch"
WATCH_DEBOUNCE_MS = 100

# Wrap
SPAWN_FAILURE_EXIT_CODE = 127
CHILD_TERMINATE_TIMEOUT = 5.0  # seconds

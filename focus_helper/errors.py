"""
Error handling for the focus helper.

Structured error codes shared by the store, the wrap launcher and the CLI.
Engine-side failures (RuntimeCallError) never leave the engine; they are
logged and the failing step becomes a no-op.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """
    Error codes for the focus helper.

    Custom codes:
    - 1100-1199: Store/configuration errors
    - 1200-1299: File system errors
    - 1400-1499: Window manager IPC errors
    - 1600-1699: Child process errors
    """

    # Store/configuration errors (1100-1199)
    CONFIG_LOAD_FAILED = 1100
    INVALID_CLASS = 1102
    LOCK_TIMEOUT = 1103

    # File system errors (1200-1299)
    FILE_WRITE_ERROR = 1202
    PERMISSION_DENIED = 1204

    # Window manager IPC errors (1400-1499)
    IPC_CALL_FAILED = 1401

    # Child process errors (1600-1699)
    SPAWN_FAILED = 1600


class FocusHelperError(Exception):
    """Base exception for focus helper errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize focus helper error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to a dictionary for structured output.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class ConfigIOError(FocusHelperError):
    """The allow-list store could not be read or written."""

    def __init__(
        self,
        path: str,
        reason: str,
        code: ErrorCode = ErrorCode.FILE_WRITE_ERROR,
        suggestion: Optional[str] = None
    ):
        """
        Initialize store I/O error.

        Args:
            path: Path to the store file
            reason: Reason for the failure
            code: Specific error code
            suggestion: Recovery suggestion
        """
        super().__init__(
            code=code,
            message=f"Allow-list store {path}: {reason}",
            suggestion=suggestion or "Check that the directory exists and is writable",
            context={"path": path, "reason": reason}
        )


class LockContentionError(ConfigIOError):
    """The store lock could not be acquired within the bounded wait."""

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(
            path=lock_path,
            reason=f"lock still held after {timeout:.1f}s",
            code=ErrorCode.LOCK_TIMEOUT,
            suggestion="Another focusctl process may be stuck; retry or remove the stale process"
        )
        self.timeout = timeout


class InvalidClassError(FocusHelperError):
    """A class name normalized to the empty key."""

    def __init__(self, raw: str):
        super().__init__(
            code=ErrorCode.INVALID_CLASS,
            message=f"Class name {raw!r} is empty after normalization",
            suggestion="Pass a non-empty window class (e.g. google-chrome)",
            context={"raw": raw}
        )


class RuntimeCallError(FocusHelperError):
    """A window manager attribute read or command failed."""

    def __init__(self, operation: str, reason: str):
        """
        Initialize window manager call error.

        Args:
            operation: IPC operation that failed
            reason: Reason for failure
        """
        super().__init__(
            code=ErrorCode.IPC_CALL_FAILED,
            message=f"Window manager {operation} failed: {reason}",
            suggestion="Ensure Sway/i3 is running and the IPC socket is accessible",
            context={"operation": operation, "reason": reason}
        )


class SpawnError(FocusHelperError):
    """The wrapped child process could not be started."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            code=ErrorCode.SPAWN_FAILED,
            message=f"Failed to start {command}: {reason}",
            suggestion="Check that the command exists and is executable",
            context={"command": command, "reason": reason}
        )

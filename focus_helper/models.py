"""Data models for the focus helper.

Pydantic models describe the persisted settings; dataclasses carry the
short-lived runtime records (allow-list snapshots, enforcement attempts,
wrap sessions).
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from .class_key import dedupe, join_list, normalize, parse_list
from .constants import DEFAULT_ATTEMPT_DELAYS


class FocusMode(str, Enum):
    """What an enforcement attempt does to a matched window."""

    ACTIVATE = "activate"  # raise, then activate
    RAISE = "raise"  # raise only

    @classmethod
    def from_str(cls, value: Optional[str]) -> "FocusMode":
        """Parse a mode string, falling back to ACTIVATE for unknown values."""
        try:
            return cls(normalize(value))
        except ValueError:
            return cls.ACTIVATE


class FocusHelperConfig(BaseModel):
    """Persisted focus helper settings.

    The allow-list is stored as a single delimiter-separated scalar so it can
    be hand-edited; ``allow_list()`` parses it.
    """

    model_config = ConfigDict(extra="ignore")

    force_focus_classes: str = ""
    mode: FocusMode = FocusMode.ACTIVATE
    debug: bool = False
    enabled: bool = True

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, v: Any) -> FocusMode:
        if isinstance(v, FocusMode):
            return v
        return FocusMode.from_str(v)

    @field_validator("force_focus_classes", mode="before")
    @classmethod
    def _coerce_classes(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return join_list(dedupe(v))
        return str(v)

    def allow_list(self) -> "AllowList":
        return AllowList.parse(self.force_focus_classes)

    def with_allow_list(self, allow_list: "AllowList") -> "FocusHelperConfig":
        return self.model_copy(update={"force_focus_classes": allow_list.to_value()})


class AllowList:
    """Ordered set of class keys.

    Membership ignores order; iteration yields keys in insertion order for
    display. An empty allow-list makes the engine a no-op.
    """

    def __init__(self, keys: Iterable[str] = ()):
        self._keys: List[str] = dedupe(keys)

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AllowList":
        return cls(parse_list(raw))

    def add(self, raw: str) -> bool:
        """Insert a key; return True if it was not present."""
        key = normalize(raw)
        if not key or key in self._keys:
            return False
        self._keys.append(key)
        return True

    def discard(self, raw: str) -> bool:
        """Remove a key; return True if it was present."""
        key = normalize(raw)
        if key not in self._keys:
            return False
        self._keys.remove(key)
        return True

    def to_value(self) -> str:
        return join_list(self._keys)

    @property
    def keys(self) -> List[str]:
        return list(self._keys)

    def __contains__(self, raw: object) -> bool:
        return isinstance(raw, str) and normalize(raw) in self._keys

    def __iter__(self):
        return iter(list(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AllowList):
            return set(self._keys) == set(other._keys)
        return NotImplemented

    def __repr__(self) -> str:
        return f"AllowList({self._keys!r})"


@dataclass(frozen=True)
class AllowListSnapshot:
    """Immutable view of the settings the engine acts on.

    Replaced wholesale on every reload; never merged.
    """
    keys: frozenset = frozenset()
    ordered: Tuple[str, ...] = ()
    mode: FocusMode = FocusMode.ACTIVATE
    enabled: bool = True
    debug: bool = False

    @classmethod
    def from_config(cls, config: FocusHelperConfig) -> "AllowListSnapshot":
        keys = config.allow_list().keys
        return cls(
            keys=frozenset(keys),
            ordered=tuple(keys),
            mode=config.mode,
            enabled=config.enabled,
            debug=config.debug,
        )

    @property
    def active(self) -> bool:
        """True if the engine should act at all."""
        return self.enabled and bool(self.keys)


@dataclass
class WindowState:
    """Transient window attributes read at the moment an attempt fires."""
    deleted: bool = False
    minimized: bool = False
    wants_input: bool = True
    active: bool = False

    @property
    def eligible(self) -> bool:
        return not self.deleted and not self.minimized and self.wants_input


class AttemptOutcome(Enum):
    """Result of one scheduled enforcement attempt."""
    APPLIED = "applied"
    SUPPRESSED = "suppressed"


@dataclass
class EnforcementAttempt:
    """One "force window W to the foreground" request and its retry ladder."""
    window: Any
    class_key: str
    reason: str
    delays: Tuple[float, ...] = DEFAULT_ATTEMPT_DELAYS
    outcomes: List[AttemptOutcome] = field(default_factory=list)

    def tag(self, index: int) -> str:
        """Log tag for the index-th attempt (``window::new+retry2``)."""
        return self.reason if index == 0 else f"{self.reason}+retry{index}"


@dataclass
class WrapSession:
    """State of one scoped wrap invocation."""
    class_key: str
    command: List[str]
    was_present: bool = False
    process: Optional[subprocess.Popen] = None
    exit_code: Optional[int] = None
    interrupted_by: Optional[int] = None


@dataclass
class ReconfigureResult:
    """Outcome of a best-effort reload signal to the window manager."""
    success: bool
    method: Optional[str] = None
    error: Optional[str] = None

    def describe(self) -> str:
        if self.success:
            return f"requested reload via {self.method}"
        return f"could not signal reload: {self.error}"

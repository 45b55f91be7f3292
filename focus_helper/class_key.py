"""Class key normalization.

A class key is the canonical, case-folded form of an application class used
for every comparison: surrounding whitespace is trimmed, the value is
lower-cased and a trailing ``.desktop`` suffix is stripped.
"""

import os
import re
from typing import Iterable, List, Optional

_DESKTOP_SUFFIX = ".desktop"
_SEPARATORS = re.compile(r"[\s,;]+")


def normalize(raw: Optional[str]) -> str:
    """Normalize a raw window class identifier into a class key.

    Total over its input: ``None`` and blank strings produce the empty key,
    which never matches anything.

    Examples:
        >>> normalize("Google-Chrome.desktop")
        'google-chrome'
        >>> normalize("  ProcletChrome ")
        'procletchrome'
    """
    if raw is None:
        return ""
    key = str(raw).strip().lower()
    # Loop so "a.desktop.desktop" normalizes to the same key as its own output.
    while key.endswith(_DESKTOP_SUFFIX):
        key = key[: -len(_DESKTOP_SUFFIX)].strip()
    return key


def parse_list(raw: Optional[str]) -> List[str]:
    """Split a delimiter-separated class list into unique class keys.

    Tokens are separated by any run of whitespace, commas or semicolons.
    Empty tokens are dropped and duplicates keep their first position.

    Examples:
        >>> parse_list("b;a,b a")
        ['b', 'a']
    """
    if not raw:
        return []
    return dedupe(_SEPARATORS.split(str(raw)))


def dedupe(values: Iterable[Optional[str]]) -> List[str]:
    """Normalize values and drop empty keys and repeats, preserving order."""
    seen = set()
    keys: List[str] = []
    for value in values:
        key = normalize(value)
        if key and key not in seen:
            seen.add(key)
            keys.append(key)
    return keys


def join_list(keys: Iterable[str]) -> str:
    """Serialize class keys into the stored scalar form."""
    return ";".join(keys)


def class_from_command(argv0: str) -> str:
    """Derive a class key from a command's executable path.

    Uses the basename of ``argv0`` so ``/opt/google/chrome/google-chrome``
    maps to ``google-chrome``.
    """
    return normalize(os.path.basename(argv0.rstrip("/")))

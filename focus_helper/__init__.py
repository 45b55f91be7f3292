"""Focus helper: let selected window classes bypass focus-stealing prevention.

Watches Sway/i3 window events and forces allow-listed application classes to
the foreground, with a small CLI (focusctl) for managing the allow-list.
"""

__version__ = "1.0.0"

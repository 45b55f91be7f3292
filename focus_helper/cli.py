#!/usr/bin/env python3
"""
focusctl: control surface for the focus helper.

Manages the allow-list of window classes that may bypass focus-stealing
prevention, and wraps launchers so their windows are admitted only while
they run.
"""

import argparse
import json
import logging
import sys
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .class_key import normalize, parse_list
from .errors import ConfigIOError, FocusHelperError, InvalidClassError
from .logging_config import setup_logging
from .models import FocusMode
from .reconfigure import request_reload
from .store import AllowListStore
from .wrap import ScopedWrap, resolve_wrap_class

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


# ANSI color codes for output
class Colors:
    RESET = "\033[0m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    BLUE = "\033[34m"


def _paint(color: str, text: str) -> str:
    if sys.stderr.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def print_success(message: str) -> None:
    """Print success message in green (stderr; stdout is kept for data)."""
    print(f"{_paint(Colors.GREEN, '✓')} {message}", file=sys.stderr)


def print_error(message: str, suggestion: Optional[str] = None) -> None:
    """Print error message in red, with an optional remediation line."""
    print(f"{_paint(Colors.RED, '✗ Error:')} {message}", file=sys.stderr)
    if suggestion:
        print(f"{_paint(Colors.BLUE, '  Remediation:')} {suggestion}", file=sys.stderr)


def print_info(message: str) -> None:
    print(f"{_paint(Colors.BLUE, 'ℹ')} {message}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(f"{_paint(Colors.YELLOW, '⚠')} {message}", file=sys.stderr)


def split_double_dash(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split argv at the first ``--`` into (options, command)."""
    argv = list(argv)
    if "--" in argv:
        pos = argv.index("--")
        return argv[:pos], argv[pos + 1:]
    return argv, []


def _reconfigure(args: argparse.Namespace) -> None:
    if getattr(args, "no_reconfigure", False):
        return
    result = request_reload()
    if not result.success:
        print_warning(f"{result.describe()} (the daemon also reloads on file change)")


# ============================================================================
# Commands
# ============================================================================


def cmd_list_classes(args: argparse.Namespace, store: AllowListStore) -> int:
    """Print each class key, one per line, in stored order."""
    keys = store.list()
    if args.json:
        print(json.dumps(keys))
        return EXIT_OK
    if not keys:
        print_info("No forced classes configured")
        return EXIT_OK
    for key in keys:
        print(key)
    return EXIT_OK


def cmd_add_class(args: argparse.Namespace, store: AllowListStore) -> int:
    if store.add(args.name):
        print_success(f"Added class {normalize(args.name)}")
        _reconfigure(args)
    else:
        print_info(f"Class {normalize(args.name)} already present")
    return EXIT_OK


def cmd_remove_class(args: argparse.Namespace, store: AllowListStore) -> int:
    if store.remove(args.name):
        print_success(f"Removed class {normalize(args.name)}")
        _reconfigure(args)
    else:
        print_info(f"Class {normalize(args.name)} not found")
    return EXIT_OK


def cmd_set_classes(args: argparse.Namespace, store: AllowListStore) -> int:
    keys = store.set_classes(parse_list(" ".join(args.classes)))
    print_success(f"Set {len(keys)} class(es): {', '.join(keys) or '(none)'}")
    _reconfigure(args)
    return EXIT_OK


def cmd_clear(args: argparse.Namespace, store: AllowListStore) -> int:
    store.clear()
    print_success("Cleared forced classes")
    _reconfigure(args)
    return EXIT_OK


def cmd_enable(args: argparse.Namespace, store: AllowListStore) -> int:
    store.set_enabled(True)
    print_success("Focus helper enabled")
    _reconfigure(args)
    return EXIT_OK


def cmd_disable(args: argparse.Namespace, store: AllowListStore) -> int:
    store.set_enabled(False)
    print_success("Focus helper disabled")
    _reconfigure(args)
    return EXIT_OK


def cmd_enabled(args: argparse.Namespace, store: AllowListStore) -> int:
    print("true" if store.read_config().enabled else "false")
    return EXIT_OK


def cmd_mode(args: argparse.Namespace, store: AllowListStore) -> int:
    if args.mode is None:
        print(store.read_config().mode.value)
        return EXIT_OK
    mode = FocusMode(args.mode)
    store.set_mode(mode)
    print_success(f"Mode set to {mode.value}")
    _reconfigure(args)
    return EXIT_OK


def cmd_reconfigure(args: argparse.Namespace, store: AllowListStore) -> int:
    """Signal the daemon to reload; failure is reported, never fatal."""
    result = request_reload()
    if result.success:
        print_success(result.describe())
    else:
        print_warning(result.describe())
    return EXIT_OK


def cmd_wrap(args: argparse.Namespace, store: AllowListStore) -> int:
    command = args.command
    if not command:
        print_error("wrap requires '-- <command...>'", "focusctl wrap <class>|--auto -- <command...>")
        return EXIT_USAGE
    if args.auto and args.name:
        print_error("wrap takes either <class> or --auto, not both")
        return EXIT_USAGE
    key = resolve_wrap_class(args.name, command, auto=args.auto)

    if args.dry_run:
        print_info(f"[dry-run] store: {store.path}")
        print_info(f"[dry-run] class: {key} ({'present' if store.contains(key) else 'absent'})")
        print_info(f"[dry-run] exec: {command}")
        print_info(
            f"[dry-run] persist: {args.persist}, enable: {not args.no_enable}, "
            f"reconfigure: {not args.no_reconfigure}"
        )
        return EXIT_OK

    wrapper = ScopedWrap(
        store,
        notifier=None if args.no_reconfigure else request_reload,
        persist=args.persist,
        enable=not args.no_enable,
    )
    return wrapper.run(key, command)


COMMANDS: Dict[str, Callable[[argparse.Namespace, AllowListStore], int]] = {
    "list-classes": cmd_list_classes,
    "add-class": cmd_add_class,
    "remove-class": cmd_remove_class,
    "set-classes": cmd_set_classes,
    "clear": cmd_clear,
    "enable": cmd_enable,
    "disable": cmd_disable,
    "enabled": cmd_enabled,
    "mode": cmd_mode,
    "reconfigure": cmd_reconfigure,
    "wrap": cmd_wrap,
}


# ============================================================================
# Parser
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focusctl",
        description="Let selected window classes bypass focus-stealing prevention.",
        epilog=(
            "Matching is case-insensitive and ignores a trailing '.desktop'. "
            "Classes are stored normalized."
        ),
    )
    parser.add_argument("--config-dir", help="Directory holding focus-helper.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--debug", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command_name", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("list-classes", help="List forced classes")
    p.add_argument("--json", action="store_true", help="Output as a JSON array")

    for name, help_text in (("add-class", "Add a forced class"),
                            ("remove-class", "Remove a forced class")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("name", help="Window class (app_id, WM_CLASS or .desktop name)")
        p.add_argument("--no-reconfigure", action="store_true", help="Do not signal the daemon")

    p = sub.add_parser("set-classes", help="Replace the forced classes (e.g. 'a;b;c')")
    p.add_argument("classes", nargs="+", help="Classes separated by ';', ',' or spaces")
    p.add_argument("--no-reconfigure", action="store_true", help="Do not signal the daemon")

    for name, help_text in (("clear", "Remove all forced classes"),
                            ("enable", "Enable the focus helper"),
                            ("disable", "Disable the focus helper")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--no-reconfigure", action="store_true", help="Do not signal the daemon")

    sub.add_parser("enabled", help="Print whether the focus helper is enabled")

    p = sub.add_parser("mode", help="Show or set the enforcement mode")
    p.add_argument("mode", nargs="?", choices=[m.value for m in FocusMode])
    p.add_argument("--no-reconfigure", action="store_true", help="Do not signal the daemon")

    sub.add_parser("reconfigure", help="Ask the daemon to reload (best effort)")

    p = sub.add_parser(
        "wrap",
        help="Run a command with its class temporarily forced",
        usage="focusctl wrap [<class>] [--auto] [--dry-run] [--no-enable] [--no-reconfigure] [--persist] -- <command...>",
    )
    p.add_argument("name", nargs="?", help="Window class to admit")
    p.add_argument("--auto", action="store_true", help="Derive the class from the command name")
    p.add_argument("--dry-run", action="store_true", help="Print what would happen and exit")
    p.add_argument("--no-enable", action="store_true", help="Do not turn the focus helper on")
    p.add_argument("--no-reconfigure", action="store_true", help="Do not signal the daemon")
    p.add_argument("--persist", action="store_true", help="Keep the class after the command exits")

    return parser


def cli_main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run a focusctl command.

    Returns:
        Process exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    options, command = split_double_dash(argv)
    parser = build_parser()
    args = parser.parse_args(options)
    args.command = command

    setup_logging(verbose=args.verbose, debug=args.debug)

    if command and args.command_name != "wrap":
        parser.error(f"'--' is only valid with wrap (got: {' '.join(command)})")

    store = AllowListStore(args.config_dir)
    handler = COMMANDS[args.command_name]

    try:
        return handler(args, store)
    except InvalidClassError as e:
        print_error(e.message, e.suggestion)
        return EXIT_USAGE
    except ConfigIOError as e:
        print_error(e.message, e.suggestion)
        return EXIT_ERROR
    except FocusHelperError as e:
        print_error(e.message, e.suggestion)
        return EXIT_ERROR


def main() -> None:
    """Console script entry point."""
    sys.exit(cli_main())


if __name__ == "__main__":
    main()

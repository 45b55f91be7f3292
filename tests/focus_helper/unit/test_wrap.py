"""
Unit tests for scoped wrap.

Children are real ``python -c`` processes so exit codes and signal
forwarding behave exactly as they would for a launched application.
"""

import os
import signal
import sys
import threading

import pytest

from focus_helper.errors import ConfigIOError, InvalidClassError
from focus_helper.models import ReconfigureResult
from focus_helper.wrap import (
    ScopedWrap,
    SignalTrap,
    WrapInterrupted,
    exit_code_from_returncode,
    resolve_wrap_class,
)

PY = sys.executable

# Exits 0 if the class is admitted while the child runs, 3 otherwise
CHECK_ADMITTED = (
    "import json, sys; "
    "d = json.load(open(sys.argv[1])); "
    "sys.exit(0 if sys.argv[2] in d['force_focus_classes'].split(';') else 3)"
)


class RecordingNotifier:

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return ReconfigureResult(success=True, method="test")


@pytest.fixture
def notifier():
    return RecordingNotifier()


class TestExitCodes:

    @pytest.mark.parametrize("returncode,expected", [
        (0, 0), (1, 1), (42, 42), (-15, 143), (-2, 130), (-9, 137),
    ])
    def test_mapping(self, returncode, expected):
        assert exit_code_from_returncode(returncode) == expected


class TestResolveWrapClass:

    def test_explicit_name(self):
        assert resolve_wrap_class("ProcletChrome", ["chrome"]) == "procletchrome"

    def test_auto(self):
        assert resolve_wrap_class(None, ["/usr/bin/Google-Chrome"], auto=True) == "google-chrome"

    def test_missing_name_derives_from_command(self):
        assert resolve_wrap_class(None, ["firefox", "--new-window"]) == "firefox"

    @pytest.mark.parametrize("name,command", [
        ("   ", ["firefox"]),
        (None, []),
        (None, ["/"]),
    ])
    def test_empty(self, name, command):
        with pytest.raises(InvalidClassError):
            resolve_wrap_class(name, command)


class TestScopedWrap:

    def test_class_admitted_during_run_and_removed_after(self, store, notifier):
        code = ScopedWrap(store, notifier=notifier).run(
            "SlowApp", [PY, "-c", CHECK_ADMITTED, str(store.path), "slowapp"]
        )

        assert code == 0
        assert store.list() == []
        # once on admission, once on release
        assert notifier.calls == 2

    def test_nonzero_exit_propagates_and_cleans_up(self, store, notifier):
        code = ScopedWrap(store, notifier=notifier).run("app", [PY, "-c", "import sys; sys.exit(7)"])

        assert code == 7
        assert store.list() == []

    def test_already_present_class_is_kept(self, store, notifier):
        store.add("procletchrome")

        code = ScopedWrap(store, notifier=notifier).run("ProcletChrome", [PY, "-c", "pass"])

        assert code == 0
        assert store.list() == ["procletchrome"]
        assert notifier.calls == 0

    def test_other_classes_untouched(self, store):
        store.add("firefox")

        ScopedWrap(store, notifier=None).run("app", [PY, "-c", "pass"])

        assert store.list() == ["firefox"]

    def test_persist_keeps_class(self, store):
        ScopedWrap(store, notifier=None, persist=True).run("app", [PY, "-c", "pass"])
        assert store.list() == ["app"]

    def test_spawn_failure(self, store, notifier, tmp_path):
        missing = str(tmp_path / "does-not-exist")

        code = ScopedWrap(store, notifier=notifier).run("ghost", [missing])

        assert code == 127
        assert store.list() == []

    def test_child_killed_by_signal(self, store):
        code = ScopedWrap(store, notifier=None).run(
            "app", [PY, "-c", "import os, signal; os.kill(os.getpid(), signal.SIGTERM)"]
        )

        assert code == 128 + signal.SIGTERM
        assert store.list() == []

    def test_sigterm_to_wrapper_stops_child_and_cleans_up(self, store):
        timer = threading.Timer(0.5, os.kill, args=(os.getpid(), signal.SIGTERM))
        timer.start()
        try:
            code = ScopedWrap(store, notifier=None, terminate_timeout=5.0).run(
                "slowapp", [PY, "-c", "import time; time.sleep(30)"]
            )
        finally:
            timer.cancel()
            timer.join()

        assert code == 143
        assert store.list() == []

    def test_signal_handlers_restored(self, store):
        before = signal.getsignal(signal.SIGTERM)
        ScopedWrap(store, notifier=None).run("app", [PY, "-c", "pass"])
        assert signal.getsignal(signal.SIGTERM) is before

    def test_failing_notifier_is_ignored(self, store):
        def broken():
            raise RuntimeError("no daemon")

        assert ScopedWrap(store, notifier=broken).run("app", [PY, "-c", "pass"]) == 0
        assert store.list() == []

    def test_empty_class(self, store):
        with pytest.raises(InvalidClassError):
            ScopedWrap(store, notifier=None).run(" ", [PY, "-c", "pass"])

    def test_empty_command(self, store):
        with pytest.raises(ValueError):
            ScopedWrap(store, notifier=None).run("app", [])

    def test_admission_failure_launches_nothing(self, store, tmp_path):
        store.base_dir.mkdir(parents=True)
        store.path.write_text("{not json")
        marker = tmp_path / "launched"

        with pytest.raises(ConfigIOError):
            ScopedWrap(store, notifier=None).run(
                "app", [PY, "-c", f"open({str(marker)!r}, 'w').close()"]
            )

        assert not marker.exists()

    def test_admission_turns_helper_on(self, store, notifier):
        store.set_enabled(False)
        check_enabled = (
            "import json, sys; "
            "sys.exit(0 if json.load(open(sys.argv[1]))['enabled'] else 3)"
        )

        code = ScopedWrap(store, notifier=notifier).run("app", [PY, "-c", check_enabled, str(store.path)])

        assert code == 0
        assert store.read_config().enabled is True
        assert store.list() == []

    def test_present_class_still_turns_helper_on(self, store, notifier):
        store.add("app")
        store.set_enabled(False)

        ScopedWrap(store, notifier=notifier).run("app", [PY, "-c", "pass"])

        assert store.read_config().enabled is True
        assert store.list() == ["app"]
        # the switch flipped, so the daemon is told once
        assert notifier.calls == 1

    def test_enable_opt_out(self, store):
        store.set_enabled(False)

        ScopedWrap(store, notifier=None, enable=False).run("app", [PY, "-c", "pass"])

        assert store.read_config().enabled is False


class TestSignalTrap:

    def test_unarmed_signal_is_recorded(self):
        with SignalTrap(signals=(signal.SIGUSR1,)) as trap:
            os.kill(os.getpid(), signal.SIGUSR1)
            assert trap.received == signal.SIGUSR1

    def test_armed_after_signal_raises_immediately(self):
        with SignalTrap(signals=(signal.SIGUSR1,)) as trap:
            os.kill(os.getpid(), signal.SIGUSR1)
            with pytest.raises(WrapInterrupted) as exc_info:
                with trap.armed():
                    pass
            assert exc_info.value.signum == signal.SIGUSR1

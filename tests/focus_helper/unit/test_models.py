"""
Unit tests for settings models and runtime records.
"""

import pytest

from focus_helper.models import (
    AllowList,
    AllowListSnapshot,
    EnforcementAttempt,
    FocusHelperConfig,
    FocusMode,
    ReconfigureResult,
    WindowState,
)


class TestFocusMode:

    @pytest.mark.parametrize("value,expected", [
        ("raise", FocusMode.RAISE),
        ("RAISE", FocusMode.RAISE),
        ("activate", FocusMode.ACTIVATE),
        ("bogus", FocusMode.ACTIVATE),
        (None, FocusMode.ACTIVATE),
    ])
    def test_from_str(self, value, expected):
        assert FocusMode.from_str(value) is expected


class TestFocusHelperConfig:

    def test_defaults(self):
        config = FocusHelperConfig()
        assert config.force_focus_classes == ""
        assert config.mode is FocusMode.ACTIVATE
        assert config.enabled is True
        assert config.debug is False
        assert len(config.allow_list()) == 0

    def test_unknown_mode_falls_back_to_activate(self):
        config = FocusHelperConfig.model_validate({"mode": "teleport"})
        assert config.mode is FocusMode.ACTIVATE

    def test_list_value_is_joined(self):
        config = FocusHelperConfig.model_validate({"force_focus_classes": ["B", "a", "b"]})
        assert config.force_focus_classes == "b;a"

    def test_null_classes(self):
        config = FocusHelperConfig.model_validate({"force_focus_classes": None})
        assert config.force_focus_classes == ""

    def test_extra_keys_ignored(self):
        config = FocusHelperConfig.model_validate({"force_focus_classes": "x", "future": 1})
        assert config.allow_list().keys == ["x"]

    def test_with_allow_list_keeps_other_settings(self):
        config = FocusHelperConfig(mode=FocusMode.RAISE, enabled=False)
        updated = config.with_allow_list(AllowList(["a", "b"]))
        assert updated.force_focus_classes == "a;b"
        assert updated.mode is FocusMode.RAISE
        assert updated.enabled is False
        assert config.force_focus_classes == ""

    def test_json_dump_uses_mode_value(self):
        data = FocusHelperConfig(mode=FocusMode.RAISE).model_dump(mode="json")
        assert data["mode"] == "raise"


class TestAllowList:

    def test_add_reports_insertion(self):
        allow_list = AllowList()
        assert allow_list.add("Firefox") is True
        assert allow_list.add("firefox.desktop") is False
        assert allow_list.keys == ["firefox"]

    def test_add_empty_is_rejected(self):
        allow_list = AllowList()
        assert allow_list.add("  ") is False
        assert len(allow_list) == 0

    def test_discard(self):
        allow_list = AllowList(["a", "b"])
        assert allow_list.discard("A") is True
        assert allow_list.discard("a") is False
        assert allow_list.keys == ["b"]

    def test_contains_normalizes(self):
        allow_list = AllowList.parse("procletchrome")
        assert "ProcletChrome" in allow_list
        assert "ProcletChrome.desktop" in allow_list
        assert "Firefox" not in allow_list
        assert 42 not in allow_list

    def test_equality_ignores_order(self):
        assert AllowList(["a", "b"]) == AllowList(["b", "a"])
        assert AllowList(["a"]) != AllowList(["a", "b"])

    def test_iteration_preserves_insertion_order(self):
        assert list(AllowList(["c", "a", "b"])) == ["c", "a", "b"]

    def test_to_value(self):
        assert AllowList(["a", "b"]).to_value() == "a;b"


class TestAllowListSnapshot:

    def test_from_config(self):
        config = FocusHelperConfig(force_focus_classes="B;a", mode=FocusMode.RAISE, debug=True)
        snapshot = AllowListSnapshot.from_config(config)
        assert snapshot.keys == frozenset({"a", "b"})
        assert snapshot.ordered == ("b", "a")
        assert snapshot.mode is FocusMode.RAISE
        assert snapshot.debug is True
        assert snapshot.active

    def test_inactive_when_empty_or_disabled(self):
        assert not AllowListSnapshot().active
        disabled = AllowListSnapshot.from_config(
            FocusHelperConfig(force_focus_classes="a", enabled=False)
        )
        assert not disabled.active

    def test_frozen(self):
        snapshot = AllowListSnapshot()
        with pytest.raises(Exception):
            snapshot.enabled = False


class TestRuntimeRecords:

    @pytest.mark.parametrize("state,eligible", [
        (WindowState(), True),
        (WindowState(active=True), True),
        (WindowState(deleted=True), False),
        (WindowState(minimized=True), False),
        (WindowState(wants_input=False), False),
    ])
    def test_window_state_eligible(self, state, eligible):
        assert state.eligible is eligible

    def test_attempt_tags(self):
        attempt = EnforcementAttempt(window=None, class_key="x", reason="window::new")
        assert attempt.tag(0) == "window::new"
        assert attempt.tag(2) == "window::new+retry2"

    def test_reconfigure_result_describe(self):
        assert "swaymsg" in ReconfigureResult(success=True, method="swaymsg").describe()
        assert "no socket" in ReconfigureResult(success=False, error="no socket").describe()


class TestErrors:

    def test_error_payload(self):
        from focus_helper.errors import ErrorCode, LockContentionError

        error = LockContentionError("/tmp/focus-helper.json.lock", 5.0)
        payload = error.to_dict()

        assert payload["code"] == ErrorCode.LOCK_TIMEOUT.value
        assert "5.0s" in payload["message"]
        assert payload["context"]["path"] == "/tmp/focus-helper.json.lock"
        assert "suggestion" in payload

"""Tests for the failpoint gate (in-process, no crash triggered)."""

from unittest import mock

from battle_themes.utils.failpoints import maybe_fail


class TestFailpointGate:
    def test_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("BGME_ENABLE_FAILPOINTS", raising=False)
        monkeypatch.setenv("BGME_FAILPOINT", "REGISTRY_BEFORE_PERSIST")

        with mock.patch("battle_themes.utils.failpoints.os._exit") as exit_mock:
            maybe_fail("REGISTRY_BEFORE_PERSIST")

        exit_mock.assert_not_called()

    def test_fires_only_for_named_point(self, monkeypatch):
        monkeypatch.setenv("BGME_ENABLE_FAILPOINTS", "1")
        monkeypatch.setenv("BGME_FAILPOINT", "FAILPOINT_REGISTRY_BEFORE_PERSIST")
        monkeypatch.setenv("BGME_FAILPOINT_EXIT_CODE", "7")

        with mock.patch("battle_themes.utils.failpoints.os._exit") as exit_mock:
            maybe_fail("ATOMIC_WRITE_AFTER_RENAME")
            exit_mock.assert_not_called()

            maybe_fail("registry_before_persist")
            exit_mock.assert_called_once_with(7)

    def test_invalid_exit_code_defaults(self, monkeypatch):
        monkeypatch.setenv("BGME_ENABLE_FAILPOINTS", "1")
        monkeypatch.setenv("BGME_FAILPOINT", "ATOMIC_WRITE_AFTER_RENAME")
        monkeypatch.setenv("BGME_FAILPOINT_EXIT_CODE", "boom")

        with mock.patch("battle_themes.utils.failpoints.os._exit") as exit_mock:
            maybe_fail("ATOMIC_WRITE_AFTER_RENAME")

        exit_mock.assert_called_once_with(42)

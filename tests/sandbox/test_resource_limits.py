"""Tests for the child-process rlimits.

`resource` is replaced by a MagicMock so these run on any platform.
"""

from unittest.mock import MagicMock, patch

import pytest

from oversight.sandbox.limits import GIB, ResourceLimits, apply_resource_limits


@pytest.fixture(autouse=True)
def _clear_limit_env(monkeypatch):
    monkeypatch.delenv("OVERSIGHT_RLIMIT_AS_BYTES", raising=False)
    monkeypatch.delenv("OVERSIGHT_RLIMIT_CPU_SECONDS", raising=False)


@pytest.fixture
def fake_resource():
    module = MagicMock(RLIMIT_AS=5, RLIMIT_CPU=0, RLIM_INFINITY=-1)
    with patch.dict("sys.modules", {"resource": module}), patch("sys.platform", "linux"):
        yield module


def _limits_set(module) -> dict:
    return {args[0]: args[1][0] for args, _ in module.setrlimit.call_args_list}


class TestApplyResourceLimits:
    def test_defaults(self, fake_resource) -> None:
        apply_resource_limits()
        assert _limits_set(fake_resource) == {
            fake_resource.RLIMIT_AS: 8 * GIB,
            fake_resource.RLIMIT_CPU: 900,
        }

    def test_soft_limit_only(self, fake_resource) -> None:
        apply_resource_limits()
        for args, _ in fake_resource.setrlimit.call_args_list:
            assert args[1][1] == fake_resource.RLIM_INFINITY

    def test_address_space_override(self, fake_resource, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_AS_BYTES", str(GIB))
        apply_resource_limits()
        assert _limits_set(fake_resource)[fake_resource.RLIMIT_AS] == GIB

    def test_zero_address_space_leaves_rlimit_as_alone(self, fake_resource, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_AS_BYTES", "0")
        apply_resource_limits()
        assert fake_resource.RLIMIT_AS not in _limits_set(fake_resource)

    def test_negative_cpu_override_uses_default(self, fake_resource, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_CPU_SECONDS", "-5")
        apply_resource_limits()
        assert _limits_set(fake_resource)[fake_resource.RLIMIT_CPU] == 900

    def test_unparseable_override_is_swallowed(self, fake_resource, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_CPU_SECONDS", "lots")
        apply_resource_limits()
        fake_resource.setrlimit.assert_not_called()

    def test_setrlimit_error_is_swallowed(self, fake_resource) -> None:
        fake_resource.setrlimit.side_effect = ValueError("not allowed")
        apply_resource_limits()

    def test_windows_is_a_noop(self, fake_resource) -> None:
        with patch("sys.platform", "win32"):
            apply_resource_limits()
        fake_resource.setrlimit.assert_not_called()


class TestResourceLimitsFromEnv:
    def test_defaults(self) -> None:
        assert ResourceLimits.from_env() == ResourceLimits(8 * GIB, 900)

    def test_blank_values_use_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_AS_BYTES", "  ")
        monkeypatch.setenv("OVERSIGHT_RLIMIT_CPU_SECONDS", "")
        assert ResourceLimits.from_env() == ResourceLimits(8 * GIB, 900)

    def test_negative_address_space_disables_cap(self, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_RLIMIT_AS_BYTES", "-1")
        assert ResourceLimits.from_env().address_space_bytes is None

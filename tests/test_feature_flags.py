"""Tests for juggernaut.core.feature_flags: the plugin-registry startup gate."""

import json

import pytest

from juggernaut.core.errors import FeatureDisabledError
from juggernaut.core.feature_flags import FeatureFlags, get_flags, reset_flags


def _registry(tmp_path, payload):
    path = tmp_path / "plugin-registry.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return path


class TestFeatureFlagsDefaults:
    def test_disabled_by_default(self):
        assert FeatureFlags().mcp_server is False

    def test_frozen(self):
        flags = FeatureFlags()
        with pytest.raises(AttributeError):
            flags.mcp_server = True  # type: ignore


class TestFromRegistry:
    def test_enabled(self, tmp_path):
        path = _registry(tmp_path, {"plugins": {"mcp-server": {"enabled": True}}})
        assert FeatureFlags.from_registry(path).mcp_server is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"plugins": {"mcp-server": {"enabled": False}}},
            {"plugins": {"mcp-server": {"enabled": "true"}}},
            {"plugins": {"mcp-server": {"enabled": 1}}},
            {"plugins": {"other": {"enabled": True}}},
            {"plugins": []},
            [],
            "{not json",
        ],
    )
    def test_anything_but_explicit_true_is_disabled(self, tmp_path, payload):
        assert FeatureFlags.from_registry(_registry(tmp_path, payload)).mcp_server is False

    def test_missing_registry_is_disabled(self, tmp_path):
        assert FeatureFlags.from_registry(tmp_path / "absent.json").mcp_server is False

    @pytest.mark.parametrize("value, expected", [("1", True), ("true", True), ("0", False), ("off", False)])
    def test_env_override_wins(self, tmp_path, monkeypatch, value, expected):
        path = _registry(tmp_path, {"plugins": {"mcp-server": {"enabled": not expected}}})
        monkeypatch.setenv("JUGGERNAUT_MCP_SERVER", value)
        assert FeatureFlags.from_registry(path).mcp_server is expected


class TestRequire:
    def test_disabled_raises_with_instructions(self):
        with pytest.raises(FeatureDisabledError, match="Settings > Plugins"):
            FeatureFlags().require("mcp_server")

    def test_enabled_passes(self):
        FeatureFlags(mcp_server=True).require("mcp_server")

    def test_unknown_flag(self):
        with pytest.raises(AttributeError, match="Unknown feature flag"):
            FeatureFlags().is_enabled("warp_drive")

    def test_to_dict(self):
        assert FeatureFlags(mcp_server=True).to_dict() == {"mcp_server": True}


class TestGlobalFlags:
    def test_singleton_until_reset(self, tmp_path):
        path = _registry(tmp_path, {"plugins": {"mcp-server": {"enabled": True}}})
        first = get_flags(path)
        assert first.mcp_server is True

        path.write_text(json.dumps({"plugins": {}}), encoding="utf-8")
        assert get_flags(path) is first

        reset_flags()
        assert get_flags(path).mcp_server is False

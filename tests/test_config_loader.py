"""Tests for YAML configuration loading."""

import pytest

from chatops_orchestrator.config_loader import (
    DEFAULT_CONFIG_PATH,
    load_app_config,
    parse_app_config,
    reset_config_cache,
    resolve_env_vars,
)
from chatops_orchestrator.errors import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_cache():
    reset_config_cache()
    yield
    reset_config_cache()


class TestResolveEnvVars:
    """Tests for ${VAR} interpolation."""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_MODEL", "gpt-test")
        assert resolve_env_vars("${PROVIDER_MODEL}") == "gpt-test"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("PROVIDER_MODEL", raising=False)
        assert resolve_env_vars("${PROVIDER_MODEL:-fallback}") == "fallback"

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("PROVIDER_MODEL", raising=False)
        assert resolve_env_vars("model=${PROVIDER_MODEL}") == "model="


class TestParseAppConfig:
    """Tests for parse_app_config."""

    def test_defaults(self):
        settings = parse_app_config({})
        assert settings.orchestrator.max_rounds == 5
        assert settings.orchestrator.loop_guard_threshold == 2
        assert settings.orchestrator.retry.max_attempts == 5
        assert settings.orchestrator.retry.base_delay == 3.0
        assert settings.planner.retry.max_attempts == 3
        assert settings.planner.retry.base_delay == 2.0
        assert settings.checklist.mutating_only is True
        assert "search" in settings.orchestrator.single_execution_operations

    def test_sections_parsed(self, monkeypatch):
        monkeypatch.setenv("PLANNER_ENABLED", "false")
        settings = parse_app_config(
            {
                "orchestrator": {"max_rounds": "10", "post_call_delay": 0, "limit_message": "provider"},
                "planner": {"enabled": "${PLANNER_ENABLED:-true}"},
                "checklist": {"mutating_only": "false", "display_limit": 2000},
                "conversation": {"allowed_channel": None, "max_recent_messages": 4},
                "server": {"port": "9000"},
            }
        )
        assert settings.orchestrator.max_rounds == 10
        assert settings.orchestrator.post_call_delay == 0.0
        assert settings.orchestrator.limit_message == "provider"
        assert settings.planner.enabled is False
        assert settings.fallback.enabled is True
        assert settings.checklist.mutating_only is False
        assert settings.checklist.display_limit == 2000
        assert settings.conversation.allowed_channel == ""
        assert settings.conversation.max_recent_messages == 4
        assert settings.server.port == 9000

    def test_invalid_limit_message(self):
        with pytest.raises(ConfigurationError, match="limit_message"):
            parse_app_config({"orchestrator": {"limit_message": "silent"}})

    def test_single_execution_must_be_list(self):
        with pytest.raises(ConfigurationError):
            parse_app_config({"orchestrator": {"single_execution_operations": "search"}})


class TestLoadAppConfig:
    """Tests for load_app_config."""

    def test_bundled_config_loads(self):
        settings = load_app_config(str(DEFAULT_CONFIG_PATH))
        assert settings.version == "1.0"
        assert settings.orchestrator.repeat_guard_operation == "screenshotWebsite"

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_app_config(str(tmp_path / "missing.yaml"))
        assert settings.orchestrator.max_rounds == 5

    def test_empty_file_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="empty"):
            load_app_config(str(path))

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_app_config(str(path))

    def test_cached_until_reload(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("orchestrator:\n  max_rounds: 7\n")
        first = load_app_config(str(path))
        path.write_text("orchestrator:\n  max_rounds: 8\n")

        assert load_app_config(str(path)) is first
        assert load_app_config(str(path), reload=True).orchestrator.max_rounds == 8

    def test_config_path_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("orchestrator:\n  model: custom-model\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))
        assert load_app_config().orchestrator.model == "custom-model"

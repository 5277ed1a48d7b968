"""
Tests for configuration loading
"""

import pytest

from deploy_core.config_loader import Config, _substitute_env_vars, load_config


CONFIG_YAML = """
service:
  name: release-orchestrator
targets:
  prod:
    desired_size: 4
  staging: {}
health:
  deadline_seconds: 90
  live_health_url: ${LIVE_URL:-http://lb.internal/health}
smoke_tests:
  checks:
    - path: /health
    - name: version
      path: /api/version
      expected_statuses: [200, 204]
store:
  backend: memory
notifications:
  webhook_url: ${DEPLOY_WEBHOOK}
"""


class TestSubstitution:

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("BG_TEST_VAR", raising=False)

        assert _substitute_env_vars("${BG_TEST_VAR:-fallback}") == "fallback"

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv("BG_TEST_VAR", "from-env")

        assert _substitute_env_vars({"a": ["${BG_TEST_VAR:-fallback}"]}) == {"a": ["from-env"]}

    def test_missing_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("BG_TEST_VAR", raising=False)

        assert _substitute_env_vars("x${BG_TEST_VAR}y") == "xy"

    def test_non_strings_untouched(self):
        assert _substitute_env_vars({"n": 3, "flag": True}) == {"n": 3, "flag": True}


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))

        assert isinstance(config, Config)
        assert config.targets == {}
        assert config.health.path == "/health"
        assert config.store.backend == "redis"

    def test_yaml_parsed(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LIVE_URL", raising=False)
        monkeypatch.setenv("DEPLOY_WEBHOOK", "https://hooks.example.com/x")
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(str(path))

        assert config.service.name == "release-orchestrator"
        assert config.get_target("prod").desired_size == 4
        assert config.get_target("staging").desired_size == 3
        assert config.get_target("qa") is None
        assert config.health.deadline_seconds == 90
        assert config.health.live_health_url == "http://lb.internal/health"
        assert [c.label for c in config.smoke_tests.checks] == ["GET /health", "version"]
        assert config.smoke_tests.checks[1].expected_statuses == [200, 204]
        assert config.store.backend == "memory"
        assert config.notifications.webhook_url == "https://hooks.example.com/x"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text("service:\n  name: from-env-path\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))

        assert load_config().service.name == "from-env-path"

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("targets:\n  prod:\n    desired_size: 0\n")

        with pytest.raises(ValueError):
            load_config(str(path))

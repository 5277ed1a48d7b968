"""
Tests for the service runner's startup wiring
"""

import pytest

from deploy_core import main


@pytest.fixture
def logging_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "configure_logging", lambda level, fmt: calls.append((level, fmt)))
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    return calls


def test_logging_follows_loaded_config(tmp_path, monkeypatch, logging_calls):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("observability:\n  log_level: DEBUG\n  log_format: console\n")

    runner = main.ServiceRunner(lambda config: None, str(config_file))

    # process settings first, then whatever config.yaml asks for
    assert logging_calls == [("INFO", "json"), ("DEBUG", "console")]
    assert runner.config.observability.log_level == "DEBUG"


def test_defaults_without_observability_section(tmp_path, monkeypatch, logging_calls):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("service:\n  name: release-orchestrator\n")

    main.ServiceRunner(lambda config: None, str(config_file))

    assert logging_calls[-1] == ("INFO", "json")

"""Tests for agent setup and argument handling in consensus/cli.py."""

import pytest
from click.testing import CliRunner

from consensus.cli import _build_agents, main
from consensus.providers.anthropic import AnthropicProvider
from consensus.providers.base import ConfigurationError
from consensus.providers.openai_provider import OpenAIProvider
from consensus.providers.registry import build_provider


def test_build_agents_with_explicit_keys(app_config):
    primary, secondary = _build_agents(app_config, primary_key="sk-ant-test", secondary_key="sk-test")
    assert isinstance(primary.provider, AnthropicProvider)
    assert isinstance(secondary.provider, OpenAIProvider)
    assert primary.label == "Claude"
    assert secondary.label == "GPT"
    assert primary.retry.max_retries == 7
    assert secondary.concurrency == 2
    assert secondary.temperature == 0.3


def test_build_agents_missing_key_raises(app_config, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
        _build_agents(app_config, secondary_key="sk-test")


def test_build_provider_unknown_sdk(sample_model_config):
    sample_model_config.sdk = "carrier-pigeon"
    with pytest.raises(ConfigurationError, match="carrier-pigeon"):
        build_provider(sample_model_config, api_key="x")


def test_cli_without_question_exits_with_error(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    result = CliRunner().invoke(main, ["--skip-health-check"])
    assert result.exit_code == 1


def test_cli_missing_keys_exits_with_error(monkeypatch):
    monkeypatch.setattr("consensus.cli.load_dotenv", lambda: None)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    result = CliRunner().invoke(main, ["What is 2+2?", "--skip-health-check"])
    assert result.exit_code == 1


def test_cli_rejects_unknown_mode():
    result = CliRunner().invoke(main, ["Q?", "--mode", "turbo"])
    assert result.exit_code == 2
    assert "turbo" in result.output

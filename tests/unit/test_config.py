"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from replycore.core.exceptions import ConfigurationError
from replycore.utils.config import Config, load_config, validate_config

MINIMAL = """
routing:
  preference: [groq, openai]
providers:
  groq:
    enabled: true
retrieval:
  top_k: 3
contract:
  max_generation_attempts: 2
"""


@pytest.fixture(autouse=True)
def clear_config_cache():
    load_config.cache_clear()
    yield
    load_config.cache_clear()


def write(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return str(path)


def test_load_config(tmp_path):
    config = load_config(write(tmp_path, MINIMAL))

    assert config["routing"]["preference"] == ["groq", "openai"]
    assert config["retrieval"]["top_k"] == 3


def test_missing_sections(tmp_path):
    with pytest.raises(ConfigurationError, match="Missing required config sections"):
        load_config(write(tmp_path, "routing: {}\n"))


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_config(write(tmp_path, "routing: [unclosed\n"))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(str(tmp_path / "absent.yaml"))


def test_preference_must_be_list():
    with pytest.raises(ConfigurationError, match="routing.preference"):
        validate_config({"routing": {"preference": "groq"}, "providers": {}, "retrieval": {}, "contract": {}})


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("REPLYCORE_PROVIDER_PREFERENCE", "openai, anthropic")
    monkeypatch.setenv("REPLYCORE_API_PORT", "9001")
    monkeypatch.setenv("REPLYCORE_EMBEDDING_MODEL", "mock")

    config = load_config(write(tmp_path, MINIMAL))

    assert config["routing"]["preference"] == ["openai", "anthropic"]
    assert config["api"]["port"] == 9001
    assert config["retrieval"]["embedding_model"] == "mock"


def test_packaged_settings_are_valid():
    config = load_config(str(Path(__file__).parents[2] / "config" / "settings.yaml"))

    assert set(config["providers"]) == {"openai", "groq", "deepseek", "anthropic"}
    assert config["routing"]["preference"][0] == "deepseek"


def test_config_attribute_access(tmp_path):
    config = Config(load_config(write(tmp_path, MINIMAL)))

    assert config.retrieval.top_k == 3
    assert config.get("missing", "default") == "default"
    with pytest.raises(AttributeError):
        config.nothing

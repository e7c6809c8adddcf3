import json

from toolstream.config import (
    DEFAULT_MODEL,
    DEFAULT_SEARCH_ENDPOINT,
    DEFAULT_SYSTEM_PROMPT,
    AgentConfig,
    load_config,
    reset_config,
    save_config,
)


def test_defaults():
    config = AgentConfig()
    assert config.api_key == ""
    assert config.model == DEFAULT_MODEL
    assert config.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert config.search_endpoint == DEFAULT_SEARCH_ENDPOINT


def test_camel_case_and_field_names_both_accepted():
    assert AgentConfig(apiKey="a").api_key == "a"
    assert AgentConfig(api_key="a").api_key == "a"


def test_values_are_stripped():
    assert AgentConfig(apiKey="  sk-1 \n", model=" m ").api_key == "sk-1"


def test_from_env(monkeypatch):
    monkeypatch.delenv("TOOLSTREAM_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    monkeypatch.setenv("TOOLSTREAM_MODEL", "gpt-test")
    config = AgentConfig.from_env()
    assert config.api_key == "sk-from-env"
    assert config.model == "gpt-test"


def test_from_env_prefers_own_key(monkeypatch):
    monkeypatch.setenv("TOOLSTREAM_API_KEY", "sk-own")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    assert AgentConfig.from_env().api_key == "sk-own"


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "settings" / "config.json"
    config = AgentConfig(apiKey="sk-1", searchKey="s-1", model="m")
    assert save_config(config, path)

    stored = json.loads(path.read_text())
    assert stored["apiKey"] == "sk-1"
    assert stored["searchKey"] == "s-1"
    assert "timeout" not in stored
    assert load_config(path) == config


def test_load_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.json") == AgentConfig()


def test_load_corrupt_file_gives_defaults(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert load_config(path) == AgentConfig()
    assert any("Could not read saved config" in r.message for r in caplog.records)


def test_reset_overwrites_saved_settings(tmp_path):
    path = tmp_path / "config.json"
    save_config(AgentConfig(apiKey="sk-1", model="m"), path)
    config = reset_config(path)
    assert config == AgentConfig()
    assert load_config(path).api_key == ""

"""Tests for configuration system."""

import tempfile
from pathlib import Path

import pytest
import yaml

from tributary.config import ConfigManager
from tributary.errors import ConfigError


def _write(tmpdir, data):
    path = Path(tmpdir) / "config.yaml"
    path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data)
    return str(path)


def test_config_creation():
    """Test config file creation."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nested" / "config.yaml"
        manager = ConfigManager(str(config_path))

        assert config_path.exists()
        assert "providers" in manager.data
        assert manager.get_server_definitions() == ()
        assert manager.get_schedule() == ()


def test_get_default_provider():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(str(Path(tmpdir) / "config.yaml"))
        assert manager.get_default_provider() == "openai"


def test_defaults_merged():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(_write(tmpdir, {"defaults": {"max_rounds": 9}}))
        defaults = manager.get_defaults()
        assert defaults["max_rounds"] == 9
        assert defaults["exit_token"] == "exit"
        assert defaults["max_workers"] == 4


def test_env_var_resolution(monkeypatch):
    monkeypatch.setenv("TEST_KEY", "test_value")
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(str(Path(tmpdir) / "config.yaml"))
        assert manager._resolve_env_var("${TEST_KEY}") == "test_value"
        assert manager._resolve_env_var("plain_value") == "plain_value"


def test_provider_needs_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(str(Path(tmpdir) / "config.yaml"))
        assert manager.get_provider_config("openai") is None

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = manager.get_provider_config("openai")
        assert config.api_key == "sk-test"
        assert config.model == "gpt-4o"


def test_disabled_provider():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(str(Path(tmpdir) / "config.yaml"))
        assert manager.get_provider_config("claude") is None
        assert manager.get_enabled_providers() == ["openai"]


def test_server_definitions():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(_write(tmpdir, {"servers": {
            "github": {
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-github"],
                "env": {"GITHUB_PERSONAL_ACCESS_TOKEN": "${GITHUB_PERSONAL_ACCESS_TOKEN}"},
            },
            "slack": {"command": "npx", "args": "-y @modelcontextprotocol/server-slack", "timeout": 20},
            "off": {"command": "npx", "enabled": False},
        }}))
        github, slack = manager.get_server_definitions()

        assert github.args == ("-y", "@modelcontextprotocol/server-github")
        assert github.timeout == 10.0
        assert github.referenced_env() == ("GITHUB_PERSONAL_ACCESS_TOKEN",)
        assert slack.args == ("-y", "@modelcontextprotocol/server-slack")
        assert slack.timeout == 20.0


def test_server_without_command():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(_write(tmpdir, {"servers": {"broken": {"args": []}}}))
        with pytest.raises(ConfigError):
            manager.get_server_definitions()


def test_schedule_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(_write(tmpdir, {"schedule": [
            {"name": "daily-summary", "cron": "0 */1 * * * *", "template": "dailySummaryPrompt",
             "params": {"repoName": "blogging-platform", "repoOwner": "venkat-vmv"}},
        ]}))
        (entry,) = manager.get_schedule()
        assert entry.cron_expression == "*/1 * * * * 0"
        assert entry.params["repoOwner"] == "venkat-vmv"


def test_templates_relative_to_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(_write(tmpdir, {"templates": {
            "directory": "prompts", "inline": {"hi": "Hello {{name}}"},
        }}))
        templates = manager.get_templates_config()
        assert templates["directory"] == Path(tmpdir) / "prompts"
        assert templates["inline"] == {"hi": "Hello {{name}}"}


def test_malformed_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            ConfigManager(_write(tmpdir, "servers: [unclosed"))


def test_non_mapping_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            ConfigManager(_write(tmpdir, "- just\n- a list\n"))


def test_example_configs_load():
    examples = Path(__file__).parent.parent / "examples"
    lens = ConfigManager(str(examples / "github-lens.yaml"))
    assert [s.name for s in lens.get_server_definitions()] == ["github", "slack"]
    assert [e.name for e in lens.get_schedule()] == ["daily-summary", "action-items"]
    assert set(lens.get_hooks_config()[0]) >= {"name", "event", "command"}

    lunch = ConfigManager(str(examples / "lunch-planner.yaml"))
    assert [s.name for s in lunch.get_server_definitions()] == ["google-maps", "slack"]
    assert lunch.get_defaults()["welcome"].startswith("Welcome to the Lunch Planner")

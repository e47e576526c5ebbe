"""
Tests for configuration loading: YAML file, environment overrides, validation.
"""
from pathlib import Path

import pytest
import yaml

from pkg.crm.config import Config, ConfigError
from pkg.crm.whatsapp import DEFAULT_MESSAGES


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return str(path)


class TestConfigLoad:

    def test_defaults_without_file(self, tmp_path):
        cfg = Config.load(str(tmp_path / "none.yaml"), environ={})
        assert cfg.port == 3001
        assert cfg.host == "127.0.0.1"
        assert cfg.max_body_mb == 10
        assert cfg.server_url is None
        assert cfg.intake_column == "numbers-list"
        assert cfg.needs_action_column == "needs-action"
        assert cfg.whatsapp_messages == DEFAULT_MESSAGES
        assert cfg.db_path == str(Path.home() / ".local" / "share" / "crm" / "db.json")

    def test_yaml_values(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", {
            "port": 4000,
            "strict_validation": True,
            "sweep_interval_secs": 5,
            "whatsapp_messages": ["سلام"],
        })
        cfg = Config.load(path, environ={})
        assert cfg.port == 4000
        assert cfg.strict_validation is True
        assert cfg.sweep_interval_secs == 5
        assert cfg.whatsapp_messages == ["سلام"]

    def test_unknown_keys_ignored(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", {"colour_scheme": "dark"})
        assert Config.load(path, environ={}).port == 3001

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.load(str(path), environ={}).port == 3001

    def test_broken_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: [3001\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            Config.load(str(path), environ={})

    def test_non_mapping(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", ["a", "b"])
        with pytest.raises(ConfigError):
            Config.load(path, environ={})


class TestEnvironment:

    def test_env_overrides_file(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", {"port": 4000, "db_path": "/srv/a.json"})
        cfg = Config.load(path, environ={
            "CRM_PORT": "5000",
            "CRM_DB": str(tmp_path / "b.json"),
            "CRM_HOST": "0.0.0.0",
            "CRM_SERVER_URL": "http://crm.local:3001",
        })
        assert cfg.port == 5000
        assert cfg.db_path == str(tmp_path / "b.json")
        assert cfg.host == "0.0.0.0"
        assert cfg.server_url == "http://crm.local:3001"

    def test_bad_port(self, tmp_path):
        with pytest.raises(ConfigError):
            Config.load(str(tmp_path / "none.yaml"), environ={"CRM_PORT": "http"})

    def test_empty_values_ignored(self, tmp_path):
        cfg = Config.load(str(tmp_path / "none.yaml"), environ={"CRM_PORT": ""})
        assert cfg.port == 3001


class TestValidate:

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"sweep_interval_secs": 0},
        {"max_body_mb": 0},
        {"intake_column": ""},
        {"whatsapp_country_code": "+98"},
    ])
    def test_invalid(self, tmp_path, overrides):
        path = write_yaml(tmp_path / "config.yaml", overrides)
        with pytest.raises(ConfigError):
            Config.load(path, environ={})

    def test_tilde_expanded(self, tmp_path):
        path = write_yaml(tmp_path / "config.yaml", {"db_path": "~/crm/db.json"})
        cfg = Config.load(path, environ={})
        assert cfg.db_path == str(Path.home() / "crm" / "db.json")

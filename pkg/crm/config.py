# CRM board — configuration
# Defaults < config.yaml < environment (CRM_*) < command line flags.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

from .schema import NUMBERS_LIST, NEEDS_ACTION
from .whatsapp import DEFAULT_MESSAGES

CONFIG_PATH = Path(__file__).parent / "config.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the CRM server and front end."""

    # Document store
    db_path: str = "~/.local/share/crm/db.json"
    host: str = "127.0.0.1"
    port: int = 3001
    server_url: Optional[str] = None   # None = use the local file directly
    max_body_mb: int = 10

    # Save behaviour
    strict_validation: bool = False    # reject documents breaking invariants
    report_save_failures: bool = True  # 500 instead of a false success
    http_timeout_secs: float = 5.0

    # Board workflow
    intake_column: str = NUMBERS_LIST
    needs_action_column: str = NEEDS_ACTION
    insert_at_end: bool = True
    sweep_interval_secs: float = 30.0

    # WhatsApp
    whatsapp_country_code: str = "98"
    whatsapp_messages: List[str] = field(default_factory=lambda: list(DEFAULT_MESSAGES))

    def resolve_paths(self):
        """Expand ~ in file paths."""
        self.db_path = str(Path(self.db_path).expanduser())

    def apply_env(self, environ=None):
        """Environment overrides, same names the deployment scripts export."""
        env = os.environ if environ is None else environ
        if env.get("CRM_DB"):
            self.db_path = env["CRM_DB"]
        if env.get("CRM_SERVER_URL"):
            self.server_url = env["CRM_SERVER_URL"]
        if env.get("CRM_HOST"):
            self.host = env["CRM_HOST"]
        if env.get("CRM_PORT"):
            try:
                self.port = int(env["CRM_PORT"])
            except ValueError:
                raise ConfigError(f"CRM_PORT must be an integer, got {env['CRM_PORT']!r}")

    def validate(self):
        if self.sweep_interval_secs <= 0:
            raise ConfigError("sweep_interval_secs must be positive")
        if not (0 < self.port < 65536):
            raise ConfigError(f"port out of range: {self.port}")
        if self.max_body_mb <= 0:
            raise ConfigError("max_body_mb must be positive")
        if not self.intake_column or not self.needs_action_column:
            raise ConfigError("intake_column and needs_action_column are required")
        if not str(self.whatsapp_country_code).isdigit():
            raise ConfigError("whatsapp_country_code must be digits only")

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read {cfg_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        else:
            cfg = cls()
        cfg.apply_env(environ)
        cfg.resolve_paths()
        cfg.validate()
        return cfg

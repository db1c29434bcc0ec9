# Tableros — configuration
# Override endpoints via tableros.yaml, or the TABLEROS_* environment variables.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

from .errors import ConfigError

CONFIG_PATH = Path(__file__).parent.parent / "tableros.yaml"

# Environment variable → Config field
ENV_OVERRIDES = {
    "TABLEROS_STORE_URL": "store_url",
    "TABLEROS_STORE_KEY": "store_key",
    "TABLEROS_STORAGE_URL": "storage_url",
    "TABLEROS_API_SECRET": "api_secret",
    "TABLEROS_LOG_LEVEL": "log_level",
}


@dataclass
class Config:
    """Runtime configuration for the boards."""

    # Record store (PostgREST-style REST endpoint)
    store_url: str = ""
    store_key: str = ""

    # Object storage HTTP API (attachments)
    storage_url: str = ""

    # Behavior
    page_size: int = 5
    http_timeout: Optional[float] = None  # None = transport default

    # Server
    api_secret: str = ""
    log_level: str = "INFO"

    def apply_env(self, environ=None):
        """Let environment variables win over file values."""
        environ = os.environ if environ is None else environ
        for env_name, attr in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value:
                setattr(self, attr, value)

    def validate(self):
        if self.page_size < 1:
            raise ConfigError(f"page_size must be >= 1, got {self.page_size}")
        if not self.store_url:
            raise ConfigError(
                "store_url is not set.\n"
                "Set it in tableros.yaml or:  export TABLEROS_STORE_URL=https://..."
            )

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        environ = os.environ if environ is None else environ
        path = path or environ.get("TABLEROS_CONFIG")
        cfg_path = Path(path) if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError):
                cfg = cls()
        else:
            cfg = cls()
        cfg.apply_env(environ)
        try:
            cfg.page_size = int(cfg.page_size)
            if cfg.http_timeout is not None:
                cfg.http_timeout = float(cfg.http_timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"page_size must be an integer and http_timeout a number of seconds "
                f"(got page_size={cfg.page_size!r}, http_timeout={cfg.http_timeout!r})"
            ) from e
        return cfg

"""Ledger configuration loading.

The YAML file may reference environment variables as ``${VAR}``; a ``.env``
file in the working directory is loaded first. Unset variables are left as
written, so the pydantic models report them.
"""

import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from research_ledger.models.config import LedgerConfig
from research_ledger.utils.exceptions import ConfigValidationError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/ledger.yaml"


class ConfigManager:
    """Loads and caches a `LedgerConfig`."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, load_env: bool = True):
        self.config_path = Path(config_path)
        self.env_loaded = not load_env
        self._config: Optional[LedgerConfig] = None

    def load_config(self) -> LedgerConfig:
        """Return the validated configuration, loading it on first use.

        Raises:
            FileNotFoundError: The configuration file does not exist.
            ConfigValidationError: The file cannot be read, parsed or validated.
        """
        if self._config is not None:
            return self._config

        if not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        data = self._parse(self._read())
        try:
            self._config = LedgerConfig(**data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}") from e

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            dialect=self._config.database.url.split("://", 1)[0],
            log_level=self._config.logging.level,
        )
        return self._config

    def _read(self) -> str:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        try:
            return self.config_path.read_text()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}") from e

    @staticmethod
    def _parse(raw: str) -> Dict[str, Any]:
        rendered = Template(raw).safe_substitute(os.environ)
        try:
            data = yaml.safe_load(rendered)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")
        return data

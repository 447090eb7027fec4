"""Configuration loader for ArgoDeploy."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from argodeploy.errors import DeployerError

DEFAULT_CONFIG_FILE = ".argodeploy.yml"


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "server",
        "namespace",
        "hub_context",
        "hub_manifests_dir",
        "spoke_manifests_dir",
        "backup_dir",
        "log_file",
        "verbose",
        "readiness_policy",
        "settle_seconds",
        "save_tokens",
        "token_dir",
        "insecure",
        "command_timeout",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise DeployerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DeployerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            raise DeployerError(f"Unknown configuration keys: {', '.join(unknown)}")

        return parsed

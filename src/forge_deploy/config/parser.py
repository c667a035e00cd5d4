"""YAML configuration parser for the forge deployment tool."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import ForgeConfig


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for the forge deployment tool.

    The configuration file is optional: when it does not exist every
    section takes its defaults. Relative paths are resolved against the
    directory containing the file (or the working directory).
    """

    def __init__(self, config_path: str = "forge.yaml", base_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to forge.yaml configuration file
            base_dir: Directory relative paths resolve against
        """
        self.config_path = Path(config_path)
        self.base_dir = Path(base_dir) if base_dir else None
        self.data: Dict = {}
        self.settings: ForgeConfig = ForgeConfig()

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Failed to parse YAML: {e}")
            if self.base_dir is None:
                self.base_dir = self.config_path.resolve().parent
        else:
            self.data = {}

        if self.base_dir is None:
            self.base_dir = Path.cwd()

        if not isinstance(self.data, dict):
            raise ConfigValidationError(
                "Configuration validation failed with 1 error(s)",
                [{"loc": ["<root>"], "msg": "Configuration must be a mapping"}],
            )

        try:
            self.settings = ForgeConfig(**self.data)
        except ValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s)", errors
            )

        return self

    def resolve(self, path: str) -> Path:
        """Resolve a configured path against the base directory."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return (self.base_dir or Path.cwd()) / candidate

    @property
    def project(self):
        return self.settings.project

    @property
    def state_path(self) -> Path:
        """Location of the persisted pipeline state."""
        return self.resolve(self.settings.paths.state_dir) / "pipeline-state.json"

    @property
    def inventory_path(self) -> Path:
        """Location of the Ansible inventory rendered from pipeline state."""
        return self.resolve(self.settings.paths.ansible_dir) / "inventory" / "hosts.ini"

    @property
    def ssh_key_path(self) -> Path:
        return self.resolve(self.settings.ssh.key_path)

    @property
    def work_dir(self) -> Path:
        return self.resolve(self.settings.paths.work_dir)

"""Configuration manager for vhicli."""

import os
import pwd
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..api.exceptions import ConfigError
from ..crypto import decrypt, encrypt
from ..models.config import Config

RC_FILE_NAME = ".vhirc"
RC_DIR_ENV = "VHICMD_RCDIR"
ENV_PREFIX = "VHI_"


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the default rc file location.

    ``$VHICMD_RCDIR/.vhirc`` when set, otherwise the rc file in the home of
    the invoking user (the original user when running under sudo).
    """
    environ = os.environ if environ is None else environ
    rc_dir = environ.get(RC_DIR_ENV)
    if rc_dir:
        return Path(rc_dir) / RC_FILE_NAME

    sudo_user = environ.get("SUDO_USER")
    if sudo_user:
        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir) / RC_FILE_NAME
        except KeyError:
            pass
    return Path.home() / RC_FILE_NAME


class ConfigManager:
    """Manage the vhicli rc file."""

    def __init__(
        self,
        config_file: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize config manager.

        Args:
            config_file: Custom rc file (defaults to :func:`default_config_path`)
            environ: Environment used for ``VHI_*`` overrides
        """
        self.environ = os.environ if environ is None else environ
        self.config_file = config_file or default_config_path(self.environ)
        self._config: Config | None = None

    def exists(self) -> bool:
        """Check if the rc file exists."""
        return self.config_file.exists()

    def _read_file(self) -> dict:
        if not self.exists():
            return {}
        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {self.config_file}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_file} must contain a mapping")
        return data

    def _env_overrides(self) -> dict[str, str]:
        overrides = {}
        for field in Config.model_fields:
            value = self.environ.get(f"{ENV_PREFIX}{field.upper()}")
            if value:
                overrides[field] = value
        return overrides

    def _decrypt_password(self, value: str) -> str:
        try:
            return decrypt(value)
        except Exception as e:
            raise ConfigError(f"Failed to decrypt password in {self.config_file}: {e}")

    def load(self) -> Config:
        """Load configuration from file and environment.

        A missing rc file yields an empty configuration.

        Returns:
            Loaded configuration with the password decrypted

        Raises:
            ConfigError: If the file is invalid or the password cannot be decrypted
        """
        data = self._read_file()
        data.update(self._env_overrides())
        try:
            config = Config(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")
        if config.password:
            config.password = self._decrypt_password(config.password)
        self._config = config
        return config

    def get(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def save(self, config: Config) -> None:
        """Write configuration to the rc file with the password encrypted.

        Raises:
            ConfigError: If save fails
        """
        data = config.model_dump(exclude_none=True)
        if data.get("password"):
            data["password"] = encrypt(data["password"])
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False)
            os.chmod(self.config_file, 0o600)
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}")
        self._config = config

    def set_value(self, key: str, value: str) -> Config:
        """Set one key in the rc file.

        Only the file contents are persisted, never ``VHI_*`` overrides.

        Raises:
            ConfigError: If the key is unknown or the value invalid
        """
        if key not in Config.model_fields:
            raise ConfigError(
                f"Unknown config key '{key}'. Valid keys: {', '.join(Config.model_fields)}"
            )
        data = self._read_file()
        if data.get("password"):
            data["password"] = self._decrypt_password(data["password"])
        data[key] = value
        try:
            config = Config(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid value for '{key}': {e}")
        self.save(config)
        return config

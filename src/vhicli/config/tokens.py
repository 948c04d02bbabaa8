"""Per-host token cache stored next to the rc file."""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..api.auth import normalize_host
from ..api.exceptions import ConfigError
from ..models.config import Token

TOKENS_FILE_NAME = ".vhicli-tokens.yaml"


class TokenStore:
    """Load and save scoped tokens keyed by host."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def beside(cls, config_file: Path) -> "TokenStore":
        """Token store in the same directory as *config_file*."""
        return cls(config_file.parent / TOKENS_FILE_NAME)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid token cache {self.path}: {e}")

    def load(self, host: str) -> Token:
        """Return the cached token for *host*.

        Raises:
            ConfigError: If no token is cached or it is expired
        """
        host = normalize_host(host)
        raw = self._read().get(host)
        if not raw:
            raise ConfigError(
                f"No valid auth token found on disk for host '{host}'; run 'vhicli auth' first"
            )
        try:
            token = Token(**raw)
        except PydanticValidationError:
            raise ConfigError(f"Cached token for '{host}' is corrupt; run 'vhicli auth' again")
        if token.is_expired():
            raise ConfigError(
                f"The auth token for '{host}' is expired; re-authenticate using 'vhicli auth'"
            )
        return token

    def save(self, token: Token) -> None:
        """Cache *token*, replacing any previous token for its host."""
        data = self._read()
        data[token.host] = token.model_dump(mode="json")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False)
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise ConfigError(f"Failed to save token: {e}")

"""State and helpers shared by all commands.

The root callback stores a :class:`CliState` on the typer context; commands
read it back to load the configuration and open an authenticated client.
"""

from pathlib import Path

import typer

from ..api.auth import normalize_host
from ..api.client import VHIClient
from ..api.exceptions import ConfigError, ValidationError
from ..config import Config, ConfigManager, TokenStore
from ..utils.template import parse_key_value_string


class CliState:
    """Global options of one invocation."""

    def __init__(
        self,
        config_file: Path | None = None,
        host: str | None = None,
        verbose: bool = False,
    ) -> None:
        self.config_file = config_file
        self.host = host
        self.verbose = verbose
        self._manager: ConfigManager | None = None

    @property
    def config_manager(self) -> ConfigManager:
        if self._manager is None:
            self._manager = ConfigManager(self.config_file)
        return self._manager

    @property
    def config(self) -> Config:
        return self.config_manager.get()

    @property
    def token_store(self) -> TokenStore:
        return TokenStore.beside(self.config_manager.config_file)

    def resolve_host(self) -> str:
        """Host from ``--host``, falling back to the rc file.

        Raises:
            ConfigError: If neither provides one
        """
        host = self.host or self.config.host
        if not host:
            raise ConfigError(
                "no host found in flags or config. Provide --host or set 'host' in .vhirc"
            )
        return normalize_host(host)

    def client(self) -> VHIClient:
        """Client for the cached token of the current host.

        Raises:
            ConfigError: If there is no usable token; run ``vhicli auth``
        """
        config = self.config
        token = self.token_store.load(self.resolve_host())
        return VHIClient(token, verify_ssl=config.verify_ssl, timeout=config.timeout)


def get_state(ctx: typer.Context) -> CliState:
    """State stored by the root callback (a default one when invoked standalone)."""
    root = ctx.find_root()
    if not isinstance(root.obj, CliState):
        root.obj = CliState()
    return root.obj


def read_ci_data(ci_data: str | None, ci_data_file: Path | None) -> dict[str, str] | None:
    """Template values from ``--ci-data`` or ``--ci-data-file``.

    The file holds the same ``key:value`` pairs, separated by commas or
    newlines.

    Raises:
        ValidationError: If both are given or the file cannot be read
    """
    if ci_data and ci_data_file:
        raise ValidationError("--ci-data and --ci-data-file are mutually exclusive")
    if ci_data_file:
        try:
            text = ci_data_file.read_text()
        except OSError as e:
            raise ValidationError(f"error reading ci-data-file: {e}")
        ci_data = ",".join(line.strip() for line in text.splitlines() if line.strip())
    if not ci_data:
        return None
    return parse_key_value_string(ci_data)

"""Configuration and token models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from ..api.exceptions import ConfigError


class Config(BaseModel):
    """Contents of the ``.vhirc`` file.

    ``networks``, ``flavor_id`` and ``image_id`` are defaults used when the
    matching command line flag is omitted.
    """

    host: str | None = None
    username: str | None = None
    password: str | None = None
    domain: str = "Default"
    project: str | None = None
    networks: str | None = None
    flavor_id: str | None = None
    image_id: str | None = None
    verify_ssl: bool = True
    timeout: int = Field(default=60, gt=0)


class Token(BaseModel):
    """Keystone token scoped to one project on one host."""

    value: str
    host: str
    project: str | None = None
    expires_at: datetime
    endpoints: dict[str, str] = Field(default_factory=dict)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is past its expiry.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            True if the token can no longer be used
        """
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at

    def endpoint(self, service: str) -> str:
        """Return the public URL of a catalog service.

        Args:
            service: Catalog service type (compute, image, network, volumev3)

        Raises:
            ConfigError: If the token's catalog has no such service
        """
        url = self.endpoints.get(service)
        if not url:
            raise ConfigError(
                f"No '{service}' endpoint in the token catalog for {self.host}. "
                "Re-authenticate with 'vhicli auth'."
            )
        return url.rstrip("/")

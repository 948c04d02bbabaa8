"""Keystone v3 authentication for the VHI API."""

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from .exceptions import AuthenticationError
from ..models.config import Token

KEYSTONE_PORT = 5000


def normalize_host(host: str) -> str:
    """Strip scheme, port and trailing slashes from a host string."""
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.split("/", 1)[0]
    if ":" in host and not host.startswith("["):
        host = host.split(":", 1)[0]
    return host


def parse_catalog(catalog: list[dict[str, Any]], interface: str = "public") -> dict[str, str]:
    """Extract service endpoints from a Keystone catalog.

    Args:
        catalog: ``token.catalog`` list from the auth response
        interface: Endpoint interface to pick

    Returns:
        Mapping of service type to endpoint URL
    """
    endpoints: dict[str, str] = {}
    for service in catalog:
        service_type = service.get("type")
        if not service_type:
            continue
        for endpoint in service.get("endpoints", []):
            if endpoint.get("interface") == interface and endpoint.get("url"):
                endpoints[service_type] = endpoint["url"].rstrip("/")
                break
    return endpoints


class AuthHandler:
    """Handle authentication against the VHI identity service."""

    def __init__(
        self,
        host: str,
        verify_ssl: bool = True,
        timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize auth handler.

        Args:
            host: VHI host (scheme and port are ignored)
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.host = normalize_host(host)
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.transport = transport
        self.auth_url = f"https://{self.host}:{KEYSTONE_PORT}/v3"

    @staticmethod
    def password_payload(username: str, password: str, domain: str, project: str) -> dict[str, Any]:
        """Build a project-scoped password auth request body."""
        return {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": username,
                            "domain": {"name": domain},
                            "password": password,
                        }
                    },
                },
                "scope": {
                    "project": {
                        "name": project,
                        "domain": {"name": domain},
                    }
                },
            }
        }

    async def authenticate(self, username: str, password: str, domain: str, project: str) -> Token:
        """Authenticate with username and password and return a scoped token.

        Args:
            username: User name
            password: User password
            domain: User and project domain
            project: Project name

        Returns:
            Token with the service endpoints of its catalog

        Raises:
            AuthenticationError: If authentication fails
        """
        payload = self.password_payload(username, password, domain, project)
        async with httpx.AsyncClient(
            verify=self.verify_ssl, timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                response = await client.post(f"{self.auth_url}/auth/tokens", json=payload)

                if response.status_code == 401:
                    raise AuthenticationError("Invalid username, password or project")

                response.raise_for_status()
                value = response.headers["X-Subject-Token"]
                body = response.json()["token"]

            except httpx.HTTPStatusError as e:
                raise AuthenticationError(f"Authentication failed: {e}")
            except httpx.RequestError as e:
                raise AuthenticationError(f"Connection failed: {e}")
            except (KeyError, ValueError):
                raise AuthenticationError("Invalid response from identity service")

        expires_raw = body.get("expires_at")
        if expires_raw:
            expires_at = datetime.fromisoformat(expires_raw.replace("Z", "+00:00"))
        else:
            expires_at = datetime.now(timezone.utc) + timedelta(hours=1)

        endpoints = parse_catalog(body.get("catalog", []))
        if "compute" not in endpoints:
            raise AuthenticationError("Token catalog has no public compute endpoint")

        return Token(
            value=value,
            host=self.host,
            project=(body.get("project") or {}).get("name", project),
            expires_at=expires_at,
            endpoints=endpoints,
        )

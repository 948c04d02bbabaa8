"""Custom exceptions for vhicli API interactions and workflows."""


class VHICliError(Exception):
    """Base exception for vhicli."""

    pass


class ConfigError(VHICliError):
    """Configuration related errors."""

    pass


class ValidationError(VHICliError):
    """Malformed or contradictory input, detected before any remote call."""

    pass


class AuthenticationError(VHICliError):
    """Authentication failures."""

    pass


class APIError(VHICliError):
    """Non-success response or undecodable body from the remote API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if applicable
        """
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: str) -> None:
        """Initialize resource not found error.

        Args:
            resource: Type of resource (server, image, network, etc.)
            identifier: Resource name or ID
        """
        super().__init__(f"{resource} '{identifier}' not found", status_code=404)
        self.resource = resource
        self.identifier = identifier


class PermissionError(APIError):
    """Permission denied (403)."""

    def __init__(self, message: str = "Permission denied") -> None:
        """Initialize permission error.

        Args:
            message: Error message
        """
        super().__init__(message, status_code=403)


class NetworkError(VHICliError):
    """Network related errors."""

    pass


class TimeoutError(VHICliError):
    """Request timeout errors."""

    pass


class PollTimeoutError(TimeoutError):
    """A status poll exhausted its attempt budget."""

    def __init__(self, kind: str, resource_id: str, target: str, last_status: str | None) -> None:
        super().__init__(
            f"timed out waiting for {kind} {resource_id} to become {target} "
            f"(last status: {last_status or 'unknown'})"
        )
        self.kind = kind
        self.resource_id = resource_id
        self.last_status = last_status


class FatalStatusError(VHICliError):
    """The polled resource reported its error status."""

    def __init__(self, kind: str, resource_id: str, status: str) -> None:
        super().__init__(f"{kind} {resource_id} entered status '{status}'")
        self.kind = kind
        self.resource_id = resource_id
        self.status = status


class CleanupError(VHICliError):
    """A required cleanup step failed and left resources behind."""

    pass


class CleanupWarning(UserWarning):
    """Best-effort cleanup failure that does not change the command outcome."""

    pass

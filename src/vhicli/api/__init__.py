"""API client and authentication."""

from .auth import AuthHandler
from .client import VHIClient
from .exceptions import (
    APIError,
    AuthenticationError,
    CleanupError,
    CleanupWarning,
    ConfigError,
    FatalStatusError,
    NetworkError,
    PermissionError,
    PollTimeoutError,
    ResourceNotFoundError,
    TimeoutError,
    ValidationError,
    VHICliError,
)

__all__ = [
    "APIError",
    "AuthHandler",
    "AuthenticationError",
    "CleanupError",
    "CleanupWarning",
    "ConfigError",
    "FatalStatusError",
    "NetworkError",
    "PermissionError",
    "PollTimeoutError",
    "ResourceNotFoundError",
    "TimeoutError",
    "VHIClient",
    "ValidationError",
    "VHICliError",
]

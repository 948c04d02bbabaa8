"""CLI commands for vhicli."""

from .main import app

__all__ = ["app"]

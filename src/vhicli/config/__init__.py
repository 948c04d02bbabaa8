"""Configuration management."""

from .manager import ConfigManager, default_config_path
from .tokens import TokenStore
from ..models.config import Config, Token

__all__ = ["Config", "ConfigManager", "Token", "TokenStore", "default_config_path"]

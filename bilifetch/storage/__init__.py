"""
Storage Layer.

This package reads persisted state: the INI configuration and the stored
accounts with their cookies.
"""

from .config_manager import ConfigManager
from .credentials import Account, CookieRecord, CredentialStore

__all__ = ["Account", "ConfigManager", "CookieRecord", "CredentialStore"]

"""
Read-only access to persisted accounts and their browser cookies.

Login and account bookkeeping write these files; this module only reads them.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from bilifetch.exceptions import AuthenticationUnavailableError

log = logging.getLogger(__name__)

ACCOUNTS_FILE = "accounts.json"


class Account(BaseModel):
    name: str
    username: str = ""
    nickname: str = ""
    uid: str = ""
    is_default: bool = False
    is_active: bool = False
    login_time: Optional[datetime] = None
    last_used: Optional[datetime] = None


class CookieRecord(BaseModel):
    """One persisted browser cookie."""

    name: str
    value: str
    domain: str = ".bilibili.com"
    path: str = "/"
    expires: float = -1
    http_only: bool = Field(False, alias="httpOnly")
    secure: bool = False
    same_site: Optional[str] = Field(None, alias="sameSite")

    class Config:
        populate_by_name = True

    def to_browser_cookie(self) -> dict[str, Any]:
        """Converts the record to the mapping a browser context accepts."""
        cookie: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "httpOnly": self.http_only,
            "secure": self.secure,
        }
        if self.same_site in ("Strict", "Lax", "None"):
            cookie["sameSite"] = self.same_site
        return cookie


class CredentialStore:
    """Loads accounts and cookie sets from a cookie directory."""

    def __init__(self, cookie_dir: Path):
        self.cookie_dir = Path(cookie_dir).expanduser()
        self.accounts_file = self.cookie_dir / ACCOUNTS_FILE

    def cookie_file(self, account_name: str) -> Path:
        return self.cookie_dir / f"{account_name}_bilibili_cookies.json"

    def load_accounts(self) -> list[Account]:
        """Returns all stored accounts, or an empty list when none were saved."""
        if not self.accounts_file.is_file():
            return []
        try:
            with open(self.accounts_file, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return [Account.model_validate(item) for item in raw]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            raise AuthenticationUnavailableError(
                f"Could not read account list '{self.accounts_file}': {e}"
            ) from e

    def get_account(self, name: str) -> Account:
        for account in self.load_accounts():
            if account.name == name:
                return account
        raise AuthenticationUnavailableError(f"Account '{name}' does not exist.")

    def get_default_account(self) -> Account:
        """
        Returns the default active account, falling back to the first active one.

        Raises:
            AuthenticationUnavailableError: If no account is active.
        """
        accounts = self.load_accounts()
        for account in accounts:
            if account.is_default and account.is_active:
                return account
        for account in accounts:
            if account.is_active:
                return account
        raise AuthenticationUnavailableError(
            "No usable account found, please log in first."
        )

    def load_cookies(self, account_name: str) -> list[CookieRecord]:
        """
        Loads the ordered cookie set persisted for an account.

        Raises:
            AuthenticationUnavailableError: If the file is missing or unreadable,
            or holds no cookies.
        """
        path = self.cookie_file(account_name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            cookies = [CookieRecord.model_validate(item) for item in raw]
        except FileNotFoundError as e:
            raise AuthenticationUnavailableError(
                f"No saved cookies for account '{account_name}', please log in again."
            ) from e
        except (OSError, ValueError, TypeError, ValidationError) as e:
            raise AuthenticationUnavailableError(
                f"Failed to load cookies for account '{account_name}': {e}"
            ) from e

        if not cookies:
            raise AuthenticationUnavailableError(
                f"Cookie file for account '{account_name}' is empty."
            )
        log.debug(f"Loaded {len(cookies)} cookies for account '{account_name}'")
        return cookies

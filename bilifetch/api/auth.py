"""
Holds the credential value handed to each API client.

Credentials are always passed explicitly; no client shares a cookie jar with
another one.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

SESSION_COOKIE = "SESSDATA"
CSRF_COOKIE = "bili_jct"


@dataclass(frozen=True)
class Credential:
    """An immutable name -> value cookie set for one account."""

    cookies: Mapping[str, str] = field(default_factory=dict)
    account_name: str = ""

    @classmethod
    def from_cookies(
        cls, cookies: Iterable[Mapping[str, Any]], account_name: str = ""
    ) -> "Credential":
        """
        Builds a credential from browser cookie records.

        Args:
            cookies: Records with at least 'name' and 'value' keys, as returned
                by a browser context.
            account_name: The account the cookies belong to.
        """
        jar = {str(c["name"]): str(c.get("value", "")) for c in cookies if c.get("name")}
        return cls(cookies=jar, account_name=account_name)

    @property
    def has_session(self) -> bool:
        return bool(self.cookies.get(SESSION_COOKIE))

    @property
    def csrf_token(self) -> str:
        return self.cookies.get(CSRF_COOKIE, "")

    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())

    def __repr__(self) -> str:
        # Cookie values never end up in logs
        return (
            f"Credential(account_name={self.account_name!r}, "
            f"cookies=<{len(self.cookies)} hidden>)"
        )

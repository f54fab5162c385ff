"""
Shared pytest fixtures for bilifetch tests.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from bilifetch.storage.credentials import CredentialStore


@pytest.fixture
def empty_catalog():
    """A quality catalog that reports nothing and makes no API calls."""
    catalog = MagicMock()
    catalog.enumerate = AsyncMock(return_value=[])
    return catalog


@pytest.fixture
def cookie_dir(tmp_path):
    """A cookie directory with one default account 'main' and one inactive account."""
    accounts = [
        {"name": "main", "nickname": "Main", "uid": "42", "is_default": True, "is_active": True},
        {"name": "old", "nickname": "Old", "uid": "7", "is_default": False, "is_active": False},
    ]
    (tmp_path / "accounts.json").write_text(json.dumps(accounts), encoding="utf-8")
    cookies = [
        {"name": "SESSDATA", "value": "sess-main", "domain": ".bilibili.com", "httpOnly": True},
        {"name": "bili_jct", "value": "csrf-main", "domain": ".bilibili.com"},
    ]
    (tmp_path / "main_bilibili_cookies.json").write_text(json.dumps(cookies), encoding="utf-8")
    return tmp_path


@pytest.fixture
def credential_store(cookie_dir):
    return CredentialStore(cookie_dir)

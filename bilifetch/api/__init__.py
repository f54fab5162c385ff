"""
Platform API Layer.

This package handles all communication with the platform's JSON API.
"""

from .auth import Credential
from .client import BilibiliAPIClient
from .rate_limiter import OperationRateLimiter, operation_key

__all__ = ["BilibiliAPIClient", "Credential", "OperationRateLimiter", "operation_key"]

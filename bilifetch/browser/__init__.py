"""
Browser Layer.

This package owns the pool of automation browsers that turn stored account
cookies into live authenticated sessions.
"""

from .pool import AuthenticatedSession, ExecutionContext, SessionPool

__all__ = ["AuthenticatedSession", "ExecutionContext", "SessionPool"]

"""Authenticated media acquisition for Bilibili videos."""

__version__ = "0.1.0"

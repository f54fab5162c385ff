"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class BiliFetchError(Exception):
    """Base exception for all application-specific errors."""


class ResolutionError(BiliFetchError):
    """Raised when no usable audio or video track exists for the requested media type."""


class TransportError(BiliFetchError):
    """
    Raised on network, HTTP or response decoding failures, either while talking
    to the platform API or while transferring bytes.
    """


class PoolExhaustedError(BiliFetchError):
    """Raised when no execution context became free within the checkout timeout."""


class AuthenticationUnavailableError(BiliFetchError):
    """Raised when an account's credentials cannot be loaded or are invalid."""


class FilesystemError(BiliFetchError):
    """Raised when an artifact cannot be created, written or renamed."""


class RateLimitedError(BiliFetchError):
    """Raised when an identical operation is repeated inside its minimum interval."""


class ConfigurationError(BiliFetchError):
    """Raised for issues related to configuration loading or validation."""


class InvalidVideoIdError(BiliFetchError):
    """Raised when a video identifier or URL cannot be recognized."""

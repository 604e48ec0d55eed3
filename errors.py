"""
Error taxonomy for the Crypto Quote Poller.

Errors are split by how the poll loop should treat them:
- PermanentError: configuration and persistence failures, always abort
- TransientError: network, payload and delivery failures, retry-worthy

With fail-fast enabled (the default) the loop aborts on both kinds.
"""

from typing import Optional


class QuotePollerError(Exception):
    """Base class for all poller errors."""


# =============================================================================
# PERMANENT ERRORS
# =============================================================================


class PermanentError(QuotePollerError):
    """An error that retrying will not fix."""


class ConfigurationError(PermanentError):
    """Missing or invalid startup configuration (env file, variables, channel)."""


class PersistenceError(PermanentError):
    """History file or chart image could not be read, parsed or written."""


# =============================================================================
# TRANSIENT ERRORS
# =============================================================================


class TransientError(QuotePollerError):
    """An error that may go away on the next cycle."""


class TransportError(TransientError):
    """HTTP or network failure talking to the pricing API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(TransientError):
    """The pricing API returned a body that is not a valid quotes envelope."""


class PublishError(TransientError):
    """The messaging transport rejected a message."""

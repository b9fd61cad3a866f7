"""Error taxonomy for hub discovery, connection, and command execution.

Every error raised by the connection manager and discovery engine derives
from ``HarmonyError`` and carries an ``ErrorCategory`` that the error
dispatcher maps to a recovery action.
"""

from enum import Enum


class ErrorCategory(Enum):
    """Category of a failure, used to select the recovery action."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CACHE = "cache"
    UNKNOWN = "unknown"


class HarmonyError(Exception):
    """Base class for all HarmonyCTL errors."""

    category = ErrorCategory.UNKNOWN
    retryable = False


class NetworkError(HarmonyError, ConnectionError):
    """Discovery, connect, or transport failure. Retried with backoff."""

    category = ErrorCategory.NETWORK
    retryable = True


class HubTimeoutError(NetworkError):
    """The hub did not answer a liveness probe in time."""


class NotConnectedError(NetworkError):
    """An operation needs a transport handle but none exists."""


class ConnectionLostError(NetworkError):
    """A previously open transport failed its liveness probe."""


class HubResponseError(HarmonyError):
    """The hub answered a request with a non-success code. Not retried."""


class AuthenticationError(HarmonyError):
    """Session missing or expired. Never retried."""

    category = ErrorCategory.AUTHENTICATION


class ValidationError(HarmonyError, ValueError):
    """Malformed discovery or hub data. Never retried."""

    category = ErrorCategory.VALIDATION


class CacheOperationError(HarmonyError):
    """Persisted store read/write failure."""

    category = ErrorCategory.CACHE


class UnknownError(HarmonyError):
    """Catch-all for failures outside the taxonomy."""


def categorize(error: BaseException) -> ErrorCategory:
    """Return the category for any exception.

    Plain ``OSError``/``TimeoutError`` from sockets count as network errors.

    Args:
        error: The exception to classify.

    Returns:
        The matching ErrorCategory.
    """
    if isinstance(error, HarmonyError):
        return error.category
    if isinstance(error, (OSError, TimeoutError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def wrap_unknown(error: Exception) -> Exception:
    """Return ``error``, or an ``UnknownError`` chained to it if unclassified.

    Errors already in the taxonomy, and socket errors, pass through.
    """
    if isinstance(error, HarmonyError) or categorize(error) is not ErrorCategory.UNKNOWN:
        return error
    wrapped = UnknownError(str(error) or type(error).__name__)
    wrapped.__cause__ = error
    return wrapped

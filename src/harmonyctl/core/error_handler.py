"""Maps failures to recovery actions and user-visible messages."""

import logging
from collections.abc import Callable

from harmonyctl.core.errors import ErrorCategory, categorize
from harmonyctl.core.notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class ErrorDispatcher:
    """Surfaces every error to the user and picks the recovery action.

    Network errors count towards a retry budget; once it is spent the
    counter resets and the user is told to give up. Authentication errors
    drop the session so the next connect starts fresh.

    ``clear_session`` runs wherever the session store lives. With a
    ``HubWorker`` that is ``worker.clear_session``, which hops onto the
    worker thread.

    Example:
        dispatcher = ErrorDispatcher(notifier, worker.clear_session)
        category = dispatcher.handle_error(exc)
    """

    def __init__(
        self,
        notifier: Notifier,
        clear_session: Callable[[], object] | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self._notifier = notifier
        self._clear_session = clear_session
        self._max_retries = max(1, max_retries)
        self._retry_count = 0

    @property
    def retry_count(self) -> int:
        """Return network failures counted since the last reset."""
        return self._retry_count

    def reset(self) -> None:
        """Reset the network retry counter (after a success)."""
        self._retry_count = 0

    def handle_error(self, error: BaseException) -> ErrorCategory:
        """Log, notify, and recover from ``error``.

        Returns:
            The category the error was handled as.
        """
        category = categorize(error)
        logger.error("%s error: %s", category.value.capitalize(), error)

        if category is ErrorCategory.NETWORK:
            self._handle_network(error)
        elif category is ErrorCategory.AUTHENTICATION:
            if self._clear_session is not None:
                self._clear_session()
            self._notifier.error("Authentication Error", "Please reconnect to your Hub")
        elif category is ErrorCategory.VALIDATION:
            self._notifier.error("Invalid Data", str(error) or "The hub returned invalid data")
        elif category is ErrorCategory.CACHE:
            self._notifier.error("Cache Error", str(error) or "Failed to access cached data")
        else:
            self._notifier.error("Unexpected Error", str(error) or type(error).__name__)
        return category

    def _handle_network(self, error: BaseException) -> None:
        if self._retry_count < self._max_retries:
            self._retry_count += 1
            self._notifier.warning(
                "Network Error",
                f"Retrying ({self._retry_count}/{self._max_retries}): {error}",
            )
            return

        self._retry_count = 0
        self._notifier.error(
            "Network Error", "Maximum retries exceeded. Please check your connection."
        )

"""Session store: one persisted session with expiry and inactivity timeout."""

import json
import logging
import time
from collections.abc import Callable

from harmonyctl.core.config import KEY_SESSION, ConfigManager
from harmonyctl.core.notifications import Notifier
from harmonyctl.models.session import Session

logger = logging.getLogger(__name__)

SESSION_DURATION = 24 * 60 * 60  # seconds
INACTIVITY_THRESHOLD = 30 * 60  # seconds


class SessionStore:
    """Tracks the single session that gates privileged hub operations.

    A session is dropped when its absolute expiry passes or when it has not
    been read for longer than the inactivity threshold. Every successful
    read extends the inactivity window.

    Example:
        store = SessionStore(config, notifier)
        store.create_session("token")
        if store.validate_session():
            ...
    """

    def __init__(
        self,
        config: ConfigManager,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            config: Backing key/value store.
            notifier: Sink for the "session expired" notification.
            clock: Source of the current epoch time in seconds.
        """
        self._config = config
        self._notifier = notifier
        self._clock = clock

    def create_session(self, token: str) -> Session:
        """Create and persist a new session, replacing any prior one."""
        now = self._clock()
        session = Session(token=token, expires_at=now + SESSION_DURATION, last_activity_at=now)
        self._save(session)
        logger.debug("Session created, expires at %.0f", session.expires_at)
        return session

    def get_session(self) -> Session | None:
        """Return the live session, refreshing its activity time.

        Returns:
            The session, or None if absent, unparsable, expired or inactive.
            Expired and inactive sessions are deleted.
        """
        raw = self._config.get_item(KEY_SESSION)
        if not raw:
            return None

        try:
            session = Session.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable session: %s", e)
            self.clear_session()
            return None

        now = self._clock()
        if session.is_expired(now):
            logger.info("Session expired")
            self.clear_session()
            return None
        if session.is_inactive(now, INACTIVITY_THRESHOLD):
            logger.info("Session inactive for more than %d minutes", INACTIVITY_THRESHOLD // 60)
            self.clear_session()
            return None

        session = session.touched(now)
        self._save(session)
        return session

    def clear_session(self) -> None:
        """Delete the persisted session unconditionally."""
        self._config.remove_item(KEY_SESSION)

    def validate_session(self) -> bool:
        """Return True if a live session exists.

        On failure a "Session Expired" error notification is emitted.
        """
        if self.get_session() is not None:
            return True
        if self._notifier is not None:
            self._notifier.error("Session Expired", "Please reconnect to your Hub")
        return False

    def _save(self, session: Session) -> None:
        self._config.set_item(KEY_SESSION, json.dumps(session.to_dict()))

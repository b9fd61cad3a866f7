"""Session model for the single authenticated hub session."""

from dataclasses import dataclass, replace
from typing import Any, Self


@dataclass(frozen=True, slots=True)
class Session:
    """A session token with absolute expiry and an inactivity clock.

    Attributes:
        token: Opaque session token.
        expires_at: Absolute expiry (epoch seconds).
        last_activity_at: Last successful read (epoch seconds).
    """

    token: str
    expires_at: float
    last_activity_at: float

    def is_expired(self, now: float) -> bool:
        """Return True if the absolute expiry has passed."""
        return now > self.expires_at

    def is_inactive(self, now: float, threshold: float) -> bool:
        """Return True if untouched for longer than ``threshold`` seconds."""
        return now - self.last_activity_at > threshold

    def touched(self, now: float) -> Self:
        """Return a copy with last_activity_at set to ``now``."""
        return replace(self, last_activity_at=now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "token": self.token,
            "expires_at": self.expires_at,
            "last_activity_at": self.last_activity_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a session from a dict produced by ``to_dict``.

        Raises:
            KeyError: If a field is missing.
            TypeError, ValueError: If a timestamp is not numeric.
        """
        return cls(
            token=str(data["token"]),
            expires_at=float(data["expires_at"]),
            last_activity_at=float(data["last_activity_at"]),
        )

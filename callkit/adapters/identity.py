"""
Identity collaborators supplying bearer credentials.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..shared.logging import get_logger


class IdentityProvider(ABC):
    """Source of the current bearer credential."""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Current bearer token, or None when signed out."""

    def handle_unauthorized(self) -> None:
        """Called after an authenticated call was rejected with 401."""
        return None


class TokenStore(IdentityProvider):
    """In-memory bearer token holder; forgets the token on 401."""

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self.logger = get_logger("callkit.identity")

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def handle_unauthorized(self) -> None:
        if self._token is not None:
            self.logger.warning("Credential rejected, clearing stored token")
        self.clear()

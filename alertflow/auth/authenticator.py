"""Credential checking behind a protocol-neutral capability interface.

The login flow depends only on ``Authenticator``; a directory-service
binding can be dropped in later without touching it.
"""

import hmac
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Authenticator(ABC):
    """Decides whether a username/password pair is valid."""

    @abstractmethod
    async def authenticate(self, username: str, password: str) -> bool:
        """Return True if the credentials are valid.

        Raises:
            Exception: The backing service could not be reached. Callers
                treat this as a failed login, not as a rejection.
        """


class StaticAuthenticator(Authenticator):
    """Checks credentials against a fixed ``username -> password`` mapping."""

    def __init__(self, users: dict[str, str]) -> None:
        self._users = dict(users)

    async def authenticate(self, username: str, password: str) -> bool:
        expected = self._users.get(username)
        if expected is None:
            logger.info("Login rejected for unknown user %r", username)
            return False
        ok = hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8"))
        if not ok:
            logger.info("Login rejected for %r: bad password", username)
        return ok

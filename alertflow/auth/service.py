"""Login flow: authenticate, resolve role, issue token."""

import logging
from datetime import timedelta

from alertflow.alerts.errors import AlertFlowError
from alertflow.auth.authenticator import Authenticator, StaticAuthenticator
from alertflow.auth.roles import RoleResolver, StaticRoleResolver
from alertflow.auth.tokens import TokenIssuer
from alertflow.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AuthenticationFailed(AlertFlowError):
    """Credentials were missing, rejected, or could not be checked."""


class LoginService:
    """Combines an authenticator, a role resolver and a token issuer."""

    def __init__(
        self,
        authenticator: Authenticator,
        roles: RoleResolver,
        issuer: TokenIssuer,
    ) -> None:
        self._authenticator = authenticator
        self._roles = roles
        self._issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LoginService":
        settings = settings or get_settings()
        if settings.auth_provider != "static":
            raise ValueError(f"Unsupported auth provider {settings.auth_provider!r}")
        return cls(
            authenticator=StaticAuthenticator(settings.auth_users),
            roles=StaticRoleResolver.with_admins(
                settings.auth_admin_users, default_role=settings.auth_default_role,
            ),
            issuer=TokenIssuer(
                settings.signing_key, ttl=timedelta(hours=settings.token_ttl_hours),
            ),
        )

    async def login(self, username: str, password: str) -> str:
        """Return a signed token for valid credentials.

        Raises:
            AuthenticationFailed: Blank input, rejected credentials, or an
                authenticator error.
        """
        if not username or not password:
            raise AuthenticationFailed("Invalid login request")

        try:
            ok = await self._authenticator.authenticate(username, password)
        except Exception as e:
            logger.warning("Authenticator error for %r: %s", username, e)
            raise AuthenticationFailed("Login failed") from e

        if not ok:
            raise AuthenticationFailed("Login failed")

        role = await self._roles.resolve(username)
        logger.info("User %r logged in with role %s", username, role)
        return self._issuer.issue(username, role)

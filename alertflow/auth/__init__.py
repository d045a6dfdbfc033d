"""Authentication: credential check, role resolution and token issuance."""

from alertflow.auth.authenticator import Authenticator, StaticAuthenticator
from alertflow.auth.roles import RoleResolver, StaticRoleResolver
from alertflow.auth.service import AuthenticationFailed, LoginService
from alertflow.auth.tokens import TokenIssuer

__all__ = [
    "AuthenticationFailed",
    "Authenticator",
    "LoginService",
    "RoleResolver",
    "StaticAuthenticator",
    "StaticRoleResolver",
    "TokenIssuer",
]

"""Role resolution for authenticated users."""

from abc import ABC, abstractmethod

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class RoleResolver(ABC):
    """Maps an authenticated username to the role placed in its token."""

    @abstractmethod
    async def resolve(self, username: str) -> str:
        """Return the role for ``username``."""


class StaticRoleResolver(RoleResolver):
    """Fixed per-user overrides on top of a default role."""

    def __init__(
        self,
        default_role: str = ROLE_USER,
        overrides: dict[str, str] | None = None,
    ) -> None:
        self._default_role = default_role
        self._overrides = dict(overrides or {})

    @classmethod
    def with_admins(
        cls,
        admins: list[str],
        default_role: str = ROLE_USER,
    ) -> "StaticRoleResolver":
        return cls(default_role, {name: ROLE_ADMIN for name in admins})

    async def resolve(self, username: str) -> str:
        return self._overrides.get(username, self._default_role)

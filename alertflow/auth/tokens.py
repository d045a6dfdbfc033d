"""Signed access tokens for authenticated users."""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

JWT_ALG = "HS256"
ISSUER = "alertflow"


class TokenIssuer:
    """Issues and verifies HS256 JWTs.

    Claims: ``jti`` and ``name`` (the username), ``iss``, ``iat``, ``exp``
    and ``role``.
    """

    def __init__(self, signing_key: str, ttl: timedelta = timedelta(hours=48)) -> None:
        if not signing_key:
            raise ValueError("signing_key must not be empty")
        self._signing_key = signing_key
        self._ttl = ttl

    def issue(self, username: str, role: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        claims = {
            "jti": username,
            "iss": ISSUER,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
            "name": username,
            "role": role,
        }
        return jwt.encode(claims, self._signing_key, algorithm=JWT_ALG)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode ``token``; raises ``jose.JWTError`` if invalid or expired."""
        return jwt.decode(token, self._signing_key, algorithms=[JWT_ALG], issuer=ISSUER)

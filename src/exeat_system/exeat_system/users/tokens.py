from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

from ..core.constants import DEFAULT_SESSION_DAYS, JWT_ALGORITHM
from ..core.exceptions import AuthenticationError
from .model import User


class TokenService:
    """Issue and verify signed, time-limited session tokens (JWT)."""

    def __init__(
        self,
        secret: str,
        *,
        lifetime: timedelta = timedelta(days=DEFAULT_SESSION_DAYS),
        algorithm: str = JWT_ALGORITHM,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._lifetime = lifetime
        self._algorithm = algorithm
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user: User) -> str:
        now = self._clock()
        payload = {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "iat": now,
            "exp": now + self._lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token is invalid or expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Token is invalid or expired")

        if not isinstance(payload.get("id"), int):
            raise AuthenticationError("Invalid token")
        return payload

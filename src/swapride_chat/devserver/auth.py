from __future__ import annotations

from dataclasses import dataclass

import jwt


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    user_id: str


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        return Principal(user_id=str(payload["sub"]))

    def issue(self, user_id: str) -> str:
        return jwt.encode({"sub": user_id}, self._secret, algorithm=self._algorithm)

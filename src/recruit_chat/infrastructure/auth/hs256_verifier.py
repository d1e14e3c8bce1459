from __future__ import annotations

import jwt

from recruit_chat.application.dto.principal import Principal
from recruit_chat.application.exceptions import AuthenticationError
from recruit_chat.domain.value_objects.enums import AccountRole


class HS256Verifier:
    """Verify JWTs signed with the job board's shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            account_id = int(payload["sub"])
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError(f"Invalid token: {exc}") from exc
        role_raw = payload.get("role", AccountRole.CANDIDATE)
        role = AccountRole(role_raw) if role_raw in AccountRole._value2member_map_ else AccountRole.CANDIDATE
        return Principal(account_id=account_id, role=role)

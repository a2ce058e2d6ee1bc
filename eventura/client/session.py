"""
Session token storage for the client.

The token is process-wide state with an explicit lifecycle: written on login, erased
on logout or on any 401. Storage sits behind :class:`SessionProvider` so tests can
use :class:`MemorySessionProvider` while applications persist with
:class:`FileSessionProvider`.
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import jwt
import structlog

from ..errors import InvalidToken
from ..schemas.common import AccountStatus, UserRole


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Caller:
    """Who is calling, as far as the client knows. The backend stays authoritative."""

    id: int
    role: UserRole
    account_status: Optional[AccountStatus] = None
    email: Optional[str] = None


class SessionProvider(ABC):
    @abstractmethod
    def get_token(self) -> Optional[str]:
        ...

    @abstractmethod
    def set_token(self, token: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    def is_authenticated(self) -> bool:
        return bool(self.get_token())


class MemorySessionProvider(SessionProvider):
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileSessionProvider(SessionProvider):
    """Durable token storage in a small JSON file.

    Writes go to a temp file in the same directory and are renamed over the target,
    so readers see either the old token or the new one, never a partial write.
    """

    def __init__(self, path):
        self.path = Path(path).expanduser()
        self._token: Optional[str] = None
        self._loaded = False

    def get_token(self) -> Optional[str]:
        if not self._loaded:
            self._token = self._read()
            self._loaded = True
        return self._token

    def set_token(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"token": token}, fh)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._token = token
        self._loaded = True

    def clear(self) -> None:
        self._token = None
        self._loaded = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def _read(self) -> Optional[str]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("session_file_unreadable", path=str(self.path), error=str(e))
            return None
        token = data.get("token") if isinstance(data, dict) else None
        return token or None


def decode_claims(token: str) -> dict:
    """Read the JWT payload segment without verifying it. Display hint only."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        raise InvalidToken()


def caller_from_token(token: str) -> Caller:
    claims = decode_claims(token)
    try:
        return Caller(id=int(claims["sub"]), role=UserRole(claims["role"]), email=claims.get("email"))
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("Token is missing identity claims")

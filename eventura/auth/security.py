import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import InvalidToken, Unauthenticated
from ..models.models import User
from ..schemas.common import AccountStatus, UserRole
from ..services.permissions import ensure_not_suspended, ensure_role


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token


def create_access_token(user: User) -> str:
    # role is a display hint for clients; every check below re-reads the user row
    return _create_token(
        str(user.id),
        settings.jwt_ttl_seconds,
        extra={"role": UserRole(user.role).value, "email": user.email},
    )


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise InvalidToken("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidToken()


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise Unauthenticated()
    payload = decode_token(creds.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidToken("Invalid subject")
    user = db.get(User, user_id)
    if user is None or user.account_status == AccountStatus.INACTIVE:
        raise Unauthenticated("User not active")
    return user


def get_active_user(user: User = Depends(get_current_user)) -> User:
    """Gate for mutating endpoints: suspended accounts may read but not act."""
    ensure_not_suspended(user)
    return user


def require_roles(*required_roles: UserRole, active: bool = True):
    base = get_active_user if active else get_current_user

    def _dep(user: User = Depends(base)):
        ensure_role(user, *required_roles)
        return user

    return _dep

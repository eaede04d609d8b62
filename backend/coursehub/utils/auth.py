"""
Auth Utilities — bcrypt password hashing, JWT issuing/verification and the
FastAPI dependencies that guard authenticated routes.
"""
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from coursehub.config import get_settings
from coursehub.database import get_db
from coursehub.errors import AuthorizationError, ForbiddenError
from coursehub.models.session import UserSession
from coursehub.models.user import User

settings = get_settings()

_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_otp() -> str:
    """Six-digit numeric one-time code."""
    return f"{secrets.randbelow(900000) + 100000}"


def create_access_token(user: User) -> str:
    """Issue a signed JWT for ``user``.

    The ``jti`` makes every token unique, so two logins within the same
    second still supersede each other.
    """
    now = datetime.utcnow()
    payload = {
        "userId": user.id,
        "email": user.email,
        "role": user.role,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthorizationError("Token has expired", error_code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthorizationError("Invalid token", error_code="TOKEN_INVALID")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user, enforcing single-device login for non-admins."""
    if credentials is None or not credentials.credentials:
        raise AuthorizationError("Access token required", error_code="TOKEN_MISSING")

    token = credentials.credentials
    claims = decode_access_token(token)

    user = db.query(User).filter(User.id == claims.get("userId")).first()
    if not user:
        raise AuthorizationError("User not found", error_code="TOKEN_INVALID")

    if not user.is_admin:
        session = db.query(UserSession).filter(UserSession.user_id == user.id).first()
        if not session or session.token != token:
            raise AuthorizationError(
                "Session expired or logged in from another device",
                error_code="SESSION_SUPERSEDED",
            )

    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user

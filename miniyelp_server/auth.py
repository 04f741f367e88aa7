# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication: JWT issue/verify, password hashing, reset credentials and route guards."""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.config import settings
from miniyelp_server.database import get_db
from miniyelp_server.errors import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
    TokenError,
    TokenExpiredError,
)
from miniyelp_server.models import Role, User
from miniyelp_server.models.timestamp import as_utc, utcnow
from miniyelp_server.services.query_features import MAX_INTEGER

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

TOKEN_COOKIE_NAME = "jwt"


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain, hashed)


# Signed tokens
@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    issued_at: int  # seconds since epoch


def issue_token(user_id: int, expires_delta: timedelta | None = None, now: datetime | None = None) -> str:
    """Create a signed JWT bound to ``user_id`` and the issue time."""
    issued = now or utcnow()
    expire = issued + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": int(issued.timestamp()),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenClaims:
    """Check signature and expiry. Raises TokenExpiredError or InvalidTokenError."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except JWTError as exc:
        raise InvalidTokenError() from exc
    sub = payload.get("sub")
    iat = payload.get("iat")
    if sub is None or iat is None:
        raise InvalidTokenError()
    try:
        claims = TokenClaims(user_id=int(sub), issued_at=int(iat))
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError() from exc
    if not 0 < claims.user_id <= MAX_INTEGER:
        raise InvalidTokenError()
    return claims


def password_changed_after(user: User, issued_at: int) -> bool:
    """True if the user's password changed after a token issued at ``issued_at``."""
    changed_at = as_utc(user.password_changed_at)
    if changed_at is None:
        return False
    return issued_at < int(changed_at.timestamp())


# Password reset credentials
@dataclass(frozen=True)
class ResetCredential:
    token: str  # plaintext, delivered out of band only
    token_hash: str
    expires_at: datetime


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_reset_credential(now: datetime | None = None) -> ResetCredential:
    token = secrets.token_hex(32)
    expires_at = (now or utcnow()) + timedelta(minutes=settings.password_reset_expire_minutes)
    return ResetCredential(token=token, token_hash=hash_reset_token(token), expires_at=expires_at)


def consume_reset_credential(
    token: str,
    stored_hash: str | None,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> bool:
    """Both the hash must match and the credential must not have expired."""
    if not stored_hash or expires_at is None:
        return False
    if not hmac.compare_digest(hash_reset_token(token), stored_hash):
        return False
    return (now or utcnow()) < as_utc(expires_at)


# Request guards
def extract_token(request: Request) -> str | None:
    """Extract JWT from Bearer header, then the jwt cookie."""
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        token = auth[7:].strip()
        if token:
            return token
    return request.cookies.get(TOKEN_COOKIE_NAME) or None


async def get_active_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id, User.active == True))  # noqa: E712
    return result.scalar_one_or_none()


async def resolve_user(db: AsyncSession, token: str | None) -> User:
    """Verify ``token`` and load its user, rejecting with an AuthenticationError subclass."""
    if not token:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    claims = verify_token(token)
    user = await get_active_user(db, claims.user_id)
    if user is None:
        raise AuthenticationError("The user belonging to this token does no longer exist.")
    if password_changed_after(user, claims.issued_at):
        raise AuthenticationError("User recently changed password! Please log in again.")
    return user


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Protect a route: 401 unless the request carries a valid token for an existing user."""
    user = await resolve_user(db, extract_token(request))
    request.state.user = user
    return user


async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> User | None:
    """Same checks as get_current_user, but any failure means an anonymous visitor."""
    try:
        user = await resolve_user(db, extract_token(request))
    except AuthenticationError as exc:
        if isinstance(exc, TokenError):
            logger.debug("Ignoring unusable token: %s", exc.message)
        return None
    except SQLAlchemyError:
        logger.debug("User lookup failed, treating request as anonymous", exc_info=True)
        await db.rollback()
        return None
    request.state.user = user
    return user


def restrict_to(*roles: Role) -> Callable[..., Awaitable[User]]:
    """Dependency factory: 403 unless the authenticated user has one of ``roles``."""
    allowed = frozenset(roles)

    async def require_role(user: User = Depends(get_current_user)) -> User:
        try:
            role = Role(user.role)
        except ValueError:
            role = None
        if role not in allowed:
            raise AuthorizationError()
        return user

    return require_role

"""Bearer tokens and password hashing."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.config import Settings
from timesheet_engine.errors import AuthenticationError
from timesheet_engine.models import User
from timesheet_engine.services.permissions import AccountStatus, Actor, Role

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Unrecognized hash format
        return False


def create_access_token(user: User, settings: Settings, now: datetime | None = None) -> str:
    """Issue a signed token identifying the user and role."""
    now = now or datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "email": user.email,
        "name": user.name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Actor:
    """Verify a token and return the actor it names.

    The role in the token is advisory; request handling reloads the user so
    role changes and suspensions take effect immediately.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    try:
        return Actor(
            id=UUID(payload["sub"]),
            role=Role(payload["role"]),
            email=payload.get("email", ""),
            name=payload.get("name", ""),
        )
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token")


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    """Check credentials; suspended and inactive accounts cannot sign in."""
    user = await session.scalar(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if user.status != AccountStatus.ACTIVE.value:
        raise AuthenticationError(f"Account is {user.status}")
    return user

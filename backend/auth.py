"""
Authentication helpers.

- Password hashing with argon2id.
- Signed auth tokens (JWT, HS256) returned by login and sent back in the
  X-Auth-Token header.
- Identity providers: the app resolves the calling user through the
  provider stored on app.state, so a fixed development/test identity is
  wired explicitly at startup instead of being decided per request.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

import argon2
import jwt
from fastapi import Request

from backend.constants import (
    AUTH_TOKEN_SECRET, AUTH_TOKEN_ALGORITHM, AUTH_TOKEN_TTL_HOURS, AUTH_TOKEN_HEADER
)
from backend.exceptions import AuthenticationException

_hasher = argon2.PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password using argon2id"""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its hash. Never raises on mismatch."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def create_auth_token(user_id: int, username: str) -> str:
    """Create a signed token valid for 24 hours"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "iat": now,
        "exp": now + timedelta(hours=AUTH_TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, AUTH_TOKEN_SECRET, algorithm=AUTH_TOKEN_ALGORITHM)


def decode_auth_token(token: str) -> int:
    """
    Validate a token and return its user ID.

    Raises:
        AuthenticationException: Token is malformed, tampered with or expired
    """
    try:
        payload = jwt.decode(token, AUTH_TOKEN_SECRET, algorithms=[AUTH_TOKEN_ALGORITHM])
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        raise AuthenticationException(f"Invalid auth token: {e}") from e


class IdentityProvider(ABC):
    """Resolves the user ID a request acts as"""

    @abstractmethod
    def resolve(self, request: Request) -> Optional[int]: ...


class TokenIdentityProvider(IdentityProvider):
    """
    X-Auth-Token header first, then (if enabled) the userId query parameter.

    An invalid token is an error, not a fallthrough to the query parameter.
    """

    def __init__(self, allow_query_param: bool = True):
        self.allow_query_param = allow_query_param

    def resolve(self, request: Request) -> Optional[int]:
        token = request.headers.get(AUTH_TOKEN_HEADER)
        if token:
            return decode_auth_token(token)

        if self.allow_query_param:
            user_id = request.query_params.get("userId")
            if user_id and user_id.isdigit():
                return int(user_id)
        return None


class StaticIdentityProvider(IdentityProvider):
    """Always resolves to one user (development and tests)"""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def resolve(self, request: Request) -> Optional[int]:
        return self.user_id


class ChainIdentityProvider(IdentityProvider):
    """First provider that resolves an ID wins"""

    def __init__(self, *providers: IdentityProvider):
        self.providers = providers

    def resolve(self, request: Request) -> Optional[int]:
        for provider in self.providers:
            user_id = provider.resolve(request)
            if user_id is not None:
                return user_id
        return None

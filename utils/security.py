"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT access token creation/verification via PyJWT
- opaque refresh token generation
"""
from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

ph = PasswordHasher()

REFRESH_TOKEN_ALPHABET = string.ascii_letters + string.digits
REFRESH_TOKEN_LENGTH = 64


class TokenExpired(Exception):
    """The token signature is fine but its exp claim is in the past."""


class InvalidToken(Exception):
    """Malformed token, bad signature or missing claims."""


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password using argon2; constant-time, never raises on mismatch
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_refresh_token(length: int = REFRESH_TOKEN_LENGTH) -> str:
    """Opaque bearer secret drawn from the OS CSPRNG."""
    return "".join(secrets.choice(REFRESH_TOKEN_ALPHABET) for _ in range(length))


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(claims: Dict[str, Any], secret: str, algorithm: str, expires: timedelta) -> str:
    """
    Sign claims (sub, email, name, role) with an absolute exp `expires` from now.
    Every token gets its own jti, so two tokens for the same claims never collide.
    sub is stringified; PyJWT requires a string subject.
    """
    now = _now()
    payload = dict(claims)
    payload["sub"] = str(claims["sub"])
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + expires).timestamp())
    payload["jti"] = generate_jti()
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises TokenExpired or InvalidToken.
    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken(f"Invalid token: {exc}") from exc

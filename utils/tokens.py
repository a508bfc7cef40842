"""
Token issuing: login, refresh and logout over the refresh_tokens table.

Access tokens are stateless JWTs (see utils.security); refresh tokens are
opaque strings persisted with a revoked flag. A login revokes every earlier
refresh token of the user and inserts the new one in the same transaction,
so a user never holds more than one active refresh token.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import update

from models import storage
from models.base_model import utcnow
from models.refresh_token import RefreshToken
from models.user import User
from utils.permissions import Role, parse_role
from utils.security import (
    InvalidToken,
    create_access_token,
    decode_token,
    generate_refresh_token,
    verify_password,
)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


class AuthError(Exception):
    """Authentication failure; `message` is safe to show to the caller."""

    status = 401

    def __init__(self, message: str, reason: Optional[str] = None, user: Optional[User] = None):
        super().__init__(message)
        self.message = message
        # for the audit trail only, never returned to the client
        self.reason = reason or message
        self.user = user


class InvalidCredentials(AuthError):
    def __init__(self, reason: str, user: Optional[User] = None):
        super().__init__(INVALID_CREDENTIALS, reason=reason, user=user)


class InvalidRefreshToken(AuthError):
    def __init__(self):
        super().__init__(INVALID_REFRESH_TOKEN)


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by an access token."""

    id: int
    email: str
    name: str
    role: Role
    exp: int

    @classmethod
    def from_payload(cls, payload: dict) -> "AccessClaims":
        return cls(
            id=int(payload["sub"]),
            email=payload["email"],
            name=payload["name"],
            role=parse_role(payload["role"]),
            exp=int(payload["exp"]),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role.value}


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User


@dataclass(frozen=True)
class AccessGrant:
    access_token: str
    expires_in: int
    user: User
    # only set when refresh tokens are rotated on use
    refresh_token: Optional[str] = None


class TokenIssuer:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        rotate_refresh: bool = False,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.rotate_refresh = rotate_refresh

    @property
    def expires_in(self) -> int:
        return int(self.access_ttl.total_seconds())

    def authenticate(self, email: str, password: str) -> User:
        """Return the user for email/password or raise InvalidCredentials."""
        session = storage.get_session()
        user = session.query(User).filter(User.email == email.strip().lower()).first()
        if user is None:
            raise InvalidCredentials("User not found")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials("Wrong password", user=user)
        return user

    def mint_access_token(self, user: User) -> str:
        claims = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
        }
        return create_access_token(claims, self.secret, self.algorithm, self.access_ttl)

    def revoke_all(self, user_id: int) -> None:
        """Revoke every live refresh token of user_id. Caller commits."""
        storage.get_session().execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session="fetch")
        )

    def _replace_refresh_token(self, user_id: int) -> str:
        """Revoke every live refresh token of user_id and stage a new one. Caller commits."""
        self.revoke_all(user_id)
        token = generate_refresh_token()
        storage.new(RefreshToken(user_id=user_id, token=token, expires_at=utcnow() + self.refresh_ttl))
        return token

    def issue(self, user: User) -> TokenPair:
        access_token = self.mint_access_token(user)
        refresh_token = self._replace_refresh_token(user.id)
        storage.save()
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.expires_in,
            user=user,
        )

    def login(self, email: str, password: str) -> TokenPair:
        return self.issue(self.authenticate(email, password))

    def refresh(self, token: str) -> AccessGrant:
        """
        Exchange a live refresh token for a new access token. Claims are read
        from the user row as it is now, not from any earlier token.
        """
        session = storage.get_session()
        row = (
            session.query(RefreshToken, User)
            .join(User, RefreshToken.user_id == User.id)
            .filter(
                RefreshToken.token == token,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > utcnow(),
            )
            .first()
        )
        if row is None:
            raise InvalidRefreshToken()
        _, user = row

        new_refresh = None
        if self.rotate_refresh:
            new_refresh = self._replace_refresh_token(user.id)
            storage.save()

        return AccessGrant(
            access_token=self.mint_access_token(user),
            expires_in=self.expires_in,
            user=user,
            refresh_token=new_refresh,
        )

    def logout(self, token: str) -> Optional[RefreshToken]:
        """
        Revoke token. Returns the revoked row when a live token was revoked,
        None when it was unknown or already revoked.
        """
        session = storage.get_session()
        rt = session.query(RefreshToken).filter(RefreshToken.token == token).first()
        if rt is None or rt.revoked:
            return None
        rt.revoked = True
        storage.save()
        return rt

    def decode_access_token(self, token: str) -> AccessClaims:
        """Raises utils.security.TokenExpired / InvalidToken."""
        payload = decode_token(token, self.secret, self.algorithm)
        try:
            return AccessClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

"""Python session client for the Orbit API."""
from client.errors import ClientError, LoginFailed, SessionExpired
from client.session import Identity, SessionClient
from client.store import FileTokenStore, StoredSession, TokenStore

__all__ = [
    "ClientError",
    "FileTokenStore",
    "Identity",
    "LoginFailed",
    "SessionClient",
    "SessionExpired",
    "StoredSession",
    "TokenStore",
]

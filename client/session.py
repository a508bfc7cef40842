"""
Client-side session management for the Orbit API.

SessionClient keeps the access/refresh token pair in a TokenStore, refreshes
the access token shortly before it expires, retries a request once after a
401, and follows logins/logouts made by any other client sharing its store.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

import httpx

from client.errors import LoginFailed, SessionExpired
from client.store import StoredSession, TokenStore
from utils.permissions import Capability, Role, capabilities_for, parse_role

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_BUFFER = 60


@dataclass(frozen=True)
class Identity:
    id: int
    email: str
    name: str
    role: Role
    capabilities: FrozenSet[Capability] = field(default=frozenset(), compare=False)

    @classmethod
    def from_user(cls, user: dict) -> "Identity":
        role = parse_role(user["role"])
        return cls(
            id=int(user["id"]),
            email=user["email"],
            name=user["name"],
            role=role,
            capabilities=capabilities_for(role),
        )

    def has_permission(self, capability) -> bool:
        return Capability(capability) in self.capabilities


def _json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SessionClient:
    def __init__(
        self,
        base_url: str,
        store: Optional[TokenStore] = None,
        *,
        http: Optional[httpx.Client] = None,
        refresh_buffer: float = DEFAULT_REFRESH_BUFFER,
        clock: Callable[[], float] = time.time,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store if store is not None else TokenStore()
        self.refresh_buffer = refresh_buffer
        self._clock = clock
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=timeout)

        self._state_lock = threading.Lock()
        self._session: Optional[StoredSession] = None
        self._identity: Optional[Identity] = None

        # single in-flight refresh shared by all concurrent callers
        self._refresh_lock = threading.Lock()
        self._pending_refresh: Optional[Future] = None

        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self._apply(self.store.load())

    # -- state -------------------------------------------------------------

    def _apply(self, session: Optional[StoredSession]) -> None:
        if session is not None and session.empty:
            session = None
        identity = None
        if session is not None and session.user:
            try:
                identity = Identity.from_user(session.user)
            except (KeyError, TypeError, ValueError):
                logger.warning("stored user record is malformed; ignoring it")
        with self._state_lock:
            self._session = session
            self._identity = identity

    def _current(self) -> Optional[StoredSession]:
        with self._state_lock:
            return self._session

    def _set_session(self, session: StoredSession) -> None:
        self._apply(session)
        self.store.save(session, origin=self)

    def _clear_local(self) -> None:
        self._apply(None)
        self.store.clear(origin=self)

    def _on_store_change(self, session: Optional[StoredSession], origin: object) -> None:
        if origin is self:
            return
        # another client logged in or out through the shared store
        self._apply(session)

    @property
    def identity(self) -> Optional[Identity]:
        with self._state_lock:
            return self._identity

    @property
    def is_authenticated(self) -> bool:
        session = self._current()
        return session is not None and bool(session.access_token) and self.identity is not None

    def has_permission(self, capability) -> bool:
        identity = self.identity
        return identity is not None and identity.has_permission(capability)

    # -- http --------------------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _post(self, path: str, payload: dict) -> httpx.Response:
        return self._http.post(self._url(path), json=payload)

    def login(self, email: str, password: str) -> Identity:
        try:
            response = self._post("/auth/login", {"email": email, "password": password})
        except httpx.TransportError as exc:
            raise LoginFailed("Network error", 0) from exc

        data = _json(response)
        if response.status_code != 200:
            raise LoginFailed(data.get("error") or "Login failed", response.status_code, data.get("retryAfter"))

        self._set_session(StoredSession(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            expires_at=self._clock() + int(data["expiresIn"]),
            user=data["user"],
        ))
        return self.identity

    def get_valid_token(self) -> Optional[str]:
        """
        Access token that is good for at least refresh_buffer more seconds,
        refreshing first if needed. None when there is no usable session.
        """
        # the store is authoritative: another process may have logged in or out
        self._apply(self.store.load())
        session = self._current()
        if session is None:
            return None

        expires_at = session.expires_at or 0
        if not session.access_token or expires_at - self.refresh_buffer <= self._clock():
            if not self.refresh_access_token():
                return None
            session = self._current()
        return session.access_token if session else None

    def refresh_access_token(self) -> bool:
        """
        Trade the refresh token for a new access token. Concurrent callers
        wait on the one request already in flight. On failure the local
        session is cleared and False is returned.
        """
        with self._refresh_lock:
            pending = self._pending_refresh
            owner = pending is None
            if owner:
                pending = self._pending_refresh = Future()
        if not owner:
            return pending.result()

        ok = False
        try:
            ok = self._do_refresh()
        finally:
            with self._refresh_lock:
                self._pending_refresh = None
            pending.set_result(ok)
        return ok

    def _do_refresh(self) -> bool:
        session = self._current()
        if session is None or not session.refresh_token:
            self._clear_local()
            return False
        try:
            response = self._post("/auth/refresh", {"refreshToken": session.refresh_token})
        except httpx.TransportError:
            logger.warning("token refresh failed: server unreachable", exc_info=True)
            self._clear_local()
            return False

        if response.status_code != 200:
            logger.info("token refresh rejected with %s", response.status_code)
            self._clear_local()
            return False

        data = _json(response)
        if not data.get("accessToken") or "expiresIn" not in data:
            logger.warning("token refresh returned an unexpected body")
            self._clear_local()
            return False
        self._set_session(StoredSession(
            access_token=data["accessToken"],
            # rotated when the server sends a new one, otherwise kept
            refresh_token=data.get("refreshToken") or session.refresh_token,
            expires_at=self._clock() + int(data["expiresIn"]),
            user=session.user,
        ))
        return True

    def _send(self, method: str, url: str, token: str, kwargs: dict) -> httpx.Response:
        headers = dict(kwargs.get("headers") or {})
        headers["Authorization"] = f"Bearer {token}"
        params = dict(kwargs, headers=headers)
        return self._http.request(method, self._url(url), **params)

    def fetch_with_auth(self, url: str, method: str = "GET", **kwargs) -> httpx.Response:
        """
        Send an authenticated request. A 401 triggers one refresh and one
        retry; if that fails too the session is dropped and SessionExpired raised.
        """
        token = self.get_valid_token()
        if token is None:
            self._clear_local()
            raise SessionExpired("Session expired, please log in again")

        response = self._send(method, url, token, kwargs)
        if response.status_code != 401:
            return response

        if not self.refresh_access_token():
            raise SessionExpired("Session expired, please log in again")
        session = self._current()
        if session is None or not session.access_token:
            raise SessionExpired("Session expired, please log in again")
        response = self._send(method, url, session.access_token, kwargs)
        if response.status_code == 401:
            self._clear_local()
            raise SessionExpired("Session expired, please log in again")
        return response

    def logout(self) -> None:
        """Drop the local session at once, then tell the server (best effort)."""
        session = self._current()
        self._clear_local()
        if session is None or not session.refresh_token:
            return
        try:
            self._post("/auth/logout", {"refreshToken": session.refresh_token})
        except httpx.HTTPError:
            logger.warning("logout notification to server failed", exc_info=True)

    def close(self) -> None:
        self._unsubscribe()
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

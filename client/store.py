"""
Durable token storage for the session client.

A store holds the session (access token, refresh token, absolute expiry and
the user) and tells every subscriber when it changes, so all clients that
share one store see a login or logout made by any of them.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class StoredSession:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    # absolute, seconds since the epoch
    expires_at: Optional[float] = None
    user: Optional[dict] = None

    @property
    def empty(self) -> bool:
        return not self.access_token and not self.refresh_token


Listener = Callable[[Optional[StoredSession], object], None]


class TokenStore:
    """In-memory store; the base for FileTokenStore."""

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._session: Optional[StoredSession] = None

    def load(self) -> Optional[StoredSession]:
        with self._lock:
            return None if self._session is None else StoredSession(**asdict(self._session))

    def save(self, session: StoredSession, origin: object = None) -> None:
        with self._lock:
            self._write(session)
            self._session = StoredSession(**asdict(session))
        self._notify(session, origin)

    def clear(self, origin: object = None) -> None:
        with self._lock:
            self._write(None)
            self._session = None
        self._notify(None, origin)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener(session, origin); returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _write(self, session: Optional[StoredSession]) -> None:
        pass

    def _notify(self, session: Optional[StoredSession], origin: object) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(session, origin)
            except Exception:
                logger.exception("token store listener failed")


class FileTokenStore(TokenStore):
    """JSON file on disk, written atomically; survives restarts."""

    def __init__(self, path):
        super().__init__()
        self.path = os.fspath(path)
        self._session = self._read()

    def _read(self) -> Optional[StoredSession]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("ignoring unreadable token file %s", self.path)
            return None
        if not isinstance(data, dict):
            return None
        return StoredSession(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
            user=data.get("user"),
        )

    def load(self) -> Optional[StoredSession]:
        with self._lock:
            # another process may have written the file since we last looked
            self._session = self._read()
        return super().load()

    def _write(self, session: Optional[StoredSession]) -> None:
        if session is None:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tokens-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(asdict(session), fh)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

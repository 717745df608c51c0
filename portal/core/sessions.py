from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Dict, Optional, Tuple

from fastapi import Request

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sid"


class SessionStore:
    """In-memory server-side session records with a fixed TTL.

    The signed session cookie only carries the record id; tokens stay on the
    server. Records are dropped lazily once they expire.
    """

    def __init__(self, ttl_s: int = 60 * 60 * 24):
        self._ttl = max(1, int(ttl_s))
        self._records: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def create(self) -> str:
        self._purge_expired()
        sid = secrets.token_urlsafe(32)
        self._records[sid] = (time.time() + self._ttl, {})
        return sid

    def read(self, sid: Optional[str]) -> Optional[Dict[str, Any]]:
        if not sid:
            return None
        rec = self._records.get(sid)
        if not rec:
            return None
        expires_at, data = rec
        if expires_at < time.time():
            self._records.pop(sid, None)
            return None
        return data

    def destroy(self, sid: Optional[str]) -> None:
        if sid:
            self._records.pop(sid, None)

    def __len__(self) -> int:
        return len(self._records)

    def _purge_expired(self) -> None:
        now = time.time()
        for sid in [k for k, (exp, _) in self._records.items() if exp < now]:
            self._records.pop(sid, None)


class Session:
    """Request-bound view of one session record."""

    def __init__(self, store: SessionStore, request: Request):
        self._store = store
        self._cookie = request.session  # подписанная cookie из SessionMiddleware
        self._data = store.read(self._cookie.get(SESSION_ID_KEY))

    @property
    def id(self) -> Optional[str]:
        return self._cookie.get(SESSION_ID_KEY)

    def _ensure(self) -> Dict[str, Any]:
        if self._data is None:
            sid = self._store.create()
            self._cookie[SESSION_ID_KEY] = sid
            self._data = self._store.read(sid)
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        if self._data is None:
            return default
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._ensure()[key] = value

    def pop(self, key: str, default: Any = None) -> Any:
        if self._data is None:
            return default
        return self._data.pop(key, default)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.get("user")

    @user.setter
    def user(self, value: Optional[Dict[str, Any]]) -> None:
        self.set("user", value)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user)

    def regenerate(self) -> None:
        """Move the record to a fresh id (after login)."""
        data = dict(self._data or {})
        self._store.destroy(self.id)
        self._data = None
        self._ensure().update(data)

    def destroy(self) -> None:
        self._store.destroy(self.id)
        self._cookie.clear()
        self._data = None

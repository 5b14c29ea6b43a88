"""
Session-scoped state persistence.

State maps are stored as JSON, keyed by a storage id (the session id for a
single app, ``<session>:<app_id>`` in the multi-app service). Keys named in
the exclusion list are dropped when persisting, so they live for the current
request only. Serialised state larger than the byte budget is still stored
but logged, since the budget mirrors what would fit in a browser cookie.

Browsers are identified by an HMAC-signed session id cookie. State that has
not been touched for ``SESSION_MAX_AGE`` seconds is dropped, matching the
cookie lifetime.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from loom_ui.specs.nodes import StateMap

logger = logging.getLogger(__name__)

# 24-hour cookie expiry
SESSION_MAX_AGE = 86400


class SessionStore(Protocol):
    """Persistence capability for state maps."""

    def get(self, storage_id: str) -> StateMap | None: ...

    def put(self, storage_id: str, state: StateMap, exclude: Iterable[str] = ()) -> None: ...

    def delete(self, storage_id: str) -> None: ...

    def lock(self, storage_id: str) -> threading.Lock: ...


class StateCodec:
    """JSON encoding of state maps with an exclusion list and a size budget.

    Args:
        exclude: Keys never persisted
        budget_bytes: Size above which a warning is logged
    """

    def __init__(self, exclude: Iterable[str] = (), budget_bytes: int = 4096) -> None:
        self.exclude = frozenset(exclude)
        self.budget_bytes = budget_bytes

    def encode(self, state: StateMap, extra_exclude: Iterable[str] = ()) -> str:
        excluded = self.exclude | frozenset(extra_exclude)
        persisted = {key: value for key, value in state.items() if key not in excluded}
        try:
            payload = json.dumps(persisted, separators=(",", ":"))
        except TypeError as e:
            logger.warning("State contains non-JSON values, storing them as strings: %s", e)
            payload = json.dumps(persisted, separators=(",", ":"), default=str)
        size = len(payload.encode("utf-8"))
        if size > self.budget_bytes:
            logger.warning(
                "Persisted state is %d bytes, over the %d byte budget; "
                "consider excluding large keys from persistence",
                size,
                self.budget_bytes,
            )
        return payload

    def decode(self, payload: str) -> StateMap:
        data: Any = json.loads(payload)
        return data if isinstance(data, dict) else {}


class MemorySessionStore:
    """In-process session store with per-session locks.

    The lock returned by ``lock`` is held by request handlers from state load
    to persist, so two requests for the same session never interleave.

    Args:
        codec: State encoding
        max_age: Seconds of inactivity after which a session's state is dropped
        clock: Monotonic time source
    """

    def __init__(
        self,
        codec: StateCodec | None = None,
        max_age: float = SESSION_MAX_AGE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.codec = codec or StateCodec()
        self.max_age = max_age
        self._clock = clock
        self._data: dict[str, str] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._touched: dict[str, float] = {}
        self._guard = threading.Lock()

    def _evict_expired(self, now: float) -> None:
        """Drop state idle for longer than ``max_age``. Caller holds ``_guard``."""
        expired = [sid for sid, touched in self._touched.items() if now - touched > self.max_age]
        for storage_id in expired:
            self._data.pop(storage_id, None)
            lock = self._locks.get(storage_id)
            if lock is None or not lock.locked():
                self._locks.pop(storage_id, None)
                del self._touched[storage_id]
        if expired:
            logger.debug("Expired %d idle session(s)", len(expired))

    def _forget(self, storage_id: str) -> None:
        self._data.pop(storage_id, None)
        self._locks.pop(storage_id, None)
        self._touched.pop(storage_id, None)

    def get(self, storage_id: str) -> StateMap | None:
        with self._guard:
            now = self._clock()
            self._evict_expired(now)
            payload = self._data.get(storage_id)
            if payload is not None:
                self._touched[storage_id] = now
        return None if payload is None else self.codec.decode(payload)

    def put(self, storage_id: str, state: StateMap, exclude: Iterable[str] = ()) -> None:
        payload = self.codec.encode(state, exclude)
        with self._guard:
            now = self._clock()
            self._evict_expired(now)
            self._data[storage_id] = payload
            self._touched[storage_id] = now

    def delete(self, storage_id: str) -> None:
        with self._guard:
            self._forget(storage_id)

    def delete_suffix(self, suffix: str) -> int:
        """Drop every entry whose storage id ends with ``suffix``. Returns the count."""
        with self._guard:
            doomed = [key for key in self._data if key.endswith(suffix)]
            lock_ids = [key for key in self._locks if key.endswith(suffix)]
            for key in {*doomed, *lock_ids}:
                self._forget(key)
        return len(doomed)

    def lock(self, storage_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(storage_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[storage_id] = lock
                self._touched.setdefault(storage_id, self._clock())
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._data)


# =============================================================================
# Session id cookie
# =============================================================================


def new_session_id() -> str:
    return secrets.token_hex(16)


def sign_session_id(session_id: str, secret_key: str) -> str:
    """Append an HMAC-SHA256 signature to a session id for cookie storage."""
    sig = hmac.new(secret_key.encode("utf-8"), session_id.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{session_id}.{sig}"


def verify_session_id(raw: str | None, secret_key: str) -> str | None:
    """Return the session id if the signature matches, else None."""
    if not raw or "." not in raw:
        return None
    session_id, sig = raw.rsplit(".", 1)
    expected = hmac.new(secret_key.encode("utf-8"), session_id.encode("utf-8"), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(sig, expected):
        logger.warning("Session cookie signature mismatch (tamper detected)")
        return None
    return session_id

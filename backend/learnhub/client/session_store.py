"""Token storage for client session agents."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: Optional[str] = None


Listener = Callable[[Optional[SessionTokens]], None]


class SessionStore(Protocol):
    """Where an agent keeps its tokens. Listeners see every change, including clear."""

    def get(self) -> Optional[SessionTokens]: ...

    def set(self, tokens: SessionTokens) -> None: ...

    def clear(self) -> None: ...

    def subscribe(self, listener: Listener) -> Callable[[], None]: ...


class MemorySessionStore:
    """In-process store, safe to share between threads."""

    def __init__(self, tokens: Optional[SessionTokens] = None):
        self._tokens = tokens
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def get(self) -> Optional[SessionTokens]:
        with self._lock:
            return self._tokens

    def set(self, tokens: SessionTokens) -> None:
        with self._lock:
            self._tokens = tokens
        self._notify(tokens)

    def clear(self) -> None:
        with self._lock:
            self._tokens = None
        self._notify(None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, tokens: Optional[SessionTokens]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(tokens)
            except Exception:
                logger.exception("Session store listener failed")

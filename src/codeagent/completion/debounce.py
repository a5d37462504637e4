"""Per-session debounce, in-flight guard and cancellation.

State machine (one per editing session)::

    IDLE ──trigger──▶ SCHEDULED ──timer fires──▶ RUNNING ──done──▶ IDLE
      ▲                  │  ▲                                       │
      │                  └──┘ re-trigger replaces the pending timer │
      └──────────────── CANCELLED ◀── token set before completion ──┘

Only the most recent trigger survives the debounce delay; superseded triggers
resolve to ``""``. While a request is RUNNING, a trigger that fires returns
``""`` (or the previous suggestion with ``reuse_last_result``) without starting
new work. The guard is tested and set with no ``await`` in between.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from enum import Enum


class RequestCancelled(Exception):
    """Raised at a suspension point once the request's token has been cancelled."""


class CancellationToken:
    """Cancellation signal shared by the caller and one completion request.

    Thread-safe, so it can be set from any thread while the request waits on a
    worker thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled()


class SessionState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    CANCELLED = "cancelled"


Evaluate = Callable[[CancellationToken], Awaitable[str]]


class CompletionSession:
    """Debounce and guard state for one document.

    Args:
        key: Session key (the document path).
        debounce_ms: Quiet period before a trigger is evaluated.
        reuse_last_result: Return the previous suggestion, not ``""``, when a
            trigger fires while a request is still running.
    """

    def __init__(self, key: str, debounce_ms: int = 300, reuse_last_result: bool = False) -> None:
        self.key = key
        self.delay = debounce_ms / 1000.0
        self.reuse_last_result = reuse_last_result
        self.state = SessionState.IDLE
        self.running = False
        self.last_result = ""
        self._timer: asyncio.Future | None = None
        self._seq = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def cancel_pending(self) -> None:
        """Invalidate the not-yet-fired timer, if any."""
        if self.pending:
            self._seq += 1
            self._timer.cancel()
            if not self.running:
                self.state = SessionState.IDLE

    async def trigger(self, evaluate: Evaluate, token: CancellationToken) -> str:
        """Schedule *evaluate* after the debounce delay and return its suggestion.

        Returns ``""`` if this trigger is superseded, cancelled, or blocked by
        the in-flight guard.
        """
        self.cancel_pending()
        self._seq += 1
        seq = self._seq
        timer = asyncio.ensure_future(asyncio.sleep(self.delay))
        self._timer = timer
        if not self.running:
            self.state = SessionState.SCHEDULED

        try:
            await timer
        except asyncio.CancelledError:
            if seq != self._seq:
                return ""  # superseded or invalidated
            raise

        if token.cancelled:
            if not self.running:
                self.state = SessionState.CANCELLED
            return ""

        if self.running:
            return self.last_result if self.reuse_last_result else ""

        self.running = True
        self.state = SessionState.RUNNING
        result = ""
        try:
            result = await evaluate(token)
        except RequestCancelled:
            result = ""
        finally:
            self.running = False
            self.state = SessionState.CANCELLED if token.cancelled else SessionState.IDLE

        if token.cancelled:
            return ""
        if result:
            self.last_result = result
        return result


class SessionRegistry:
    """Independent sessions keyed by document path."""

    def __init__(self, debounce_ms: int = 300, reuse_last_result: bool = False) -> None:
        self.debounce_ms = debounce_ms
        self.reuse_last_result = reuse_last_result
        self._sessions: dict[str, CompletionSession] = {}

    def get(self, key: str) -> CompletionSession:
        session = self._sessions.get(key)
        if session is None:
            session = CompletionSession(key, self.debounce_ms, self.reuse_last_result)
            self._sessions[key] = session
        return session

    def close(self, key: str) -> None:
        session = self._sessions.pop(key, None)
        if session is not None:
            session.cancel_pending()

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

"""Bounded pool of server sessions.

The pool is the only backpressure mechanism of a restore: every schema
request and every batch write holds one session, so total server-facing
work never exceeds the pool capacity no matter how many files load at once.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from rdbrestore.core.errors import ConnectionUnavailableError

DEFAULT_POOL_SIZE = 20

log = logging.getLogger(__name__)


class SessionPool:
    """
    Thread-safe pool of lazily opened connections.

    Args:
        connect: Factory returning a new open connection.
        max_open: Maximum number of sessions checked out at once.
    """

    def __init__(self, connect: Callable[[], Any], max_open: int = DEFAULT_POOL_SIZE):
        if max_open < 1:
            raise ValueError("max_open must be >= 1")
        self._connect = connect
        self.max_open = max_open
        self._slots = threading.BoundedSemaphore(max_open)
        self._lock = threading.Lock()
        self._idle: list[Any] = []
        self._opened = 0

    @property
    def opened(self) -> int:
        """Number of connections opened over the pool's lifetime."""
        return self._opened

    def _checkout(self) -> Any:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        try:
            conn = self._connect()
        except ConnectionUnavailableError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ConnectionUnavailableError(f"could not open session: {exc}") from exc
        with self._lock:
            self._opened += 1
        log.debug("opened session #%d", self._opened)
        return conn

    def _checkin(self, conn: Any, *, healthy: bool) -> None:
        if healthy:
            with self._lock:
                self._idle.append(conn)
            return
        log.debug("discarding broken session")
        _close_quietly(conn)

    @contextmanager
    def session(self) -> Iterator[Any]:
        """
        Check out one session, blocking while the pool is exhausted.

        The session goes back to the pool on every exit path. A session whose
        use raised ConnectionUnavailableError is closed instead.
        """
        self._slots.acquire()
        try:
            conn = self._checkout()
        except BaseException:
            self._slots.release()
            raise

        healthy = True
        try:
            yield conn
        except ConnectionUnavailableError:
            healthy = False
            raise
        finally:
            self._checkin(conn, healthy=healthy)
            self._slots.release()

    def close(self) -> None:
        """Close every idle connection."""
        with self._lock:
            idle, self._idle = self._idle, []
        for conn in idle:
            _close_quietly(conn)


def _close_quietly(conn: Any) -> None:
    close = getattr(conn, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception as exc:  # noqa: BLE001
        log.debug("error while closing session: %s", exc)

"""Upstream session id holder.

Streamable HTTP servers may assign a session id in the ``Mcp-Session-Id``
response header of the ``initialize`` exchange. The proxy echoes it on every
later request and forgets it when the upstream answers 404 (session gone),
so the client's next ``initialize`` starts a fresh one.
"""

from __future__ import annotations

__all__ = ["SessionManager"]

import logging
import threading

from mcp_gcloud_proxy.constants import APP_NAME

_logger = logging.getLogger(f"{APP_NAME}.session")


class SessionManager:
    """Holds at most one upstream session id.

    All access goes through a lock, so a concurrent set() and clear() never
    interleave. The lock is never held across an await.

    Usage:
        session = SessionManager()
        session.set("abc")
        session.get()  # "abc"
        session.clear()
    """

    def __init__(self) -> None:
        self._session_id: str | None = None
        self._lock = threading.Lock()

    def get(self) -> str | None:
        """Return the current session id, or None."""
        with self._lock:
            return self._session_id

    def set(self, session_id: str) -> None:
        """Store session_id, replacing any previous one."""
        with self._lock:
            previous = self._session_id
            self._session_id = session_id
        if previous != session_id:
            _logger.info(
                {
                    "event": "session_established",
                    "message": "Upstream session established",
                    "session_id": session_id,
                }
            )

    def clear(self) -> None:
        """Forget the session id. Idempotent."""
        with self._lock:
            previous = self._session_id
            self._session_id = None
        if previous is not None:
            _logger.info(
                {
                    "event": "session_cleared",
                    "message": "Upstream session cleared",
                    "session_id": previous,
                }
            )

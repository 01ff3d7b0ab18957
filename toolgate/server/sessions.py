"""
Session registry for the gateway.

Maps session identifiers to their :class:`SessionTransport`. The registry
never allocates identifiers; the gateway does that and hands them in.
"""

import logging
import threading
import time
from typing import Callable, Iterator, Optional

from ..tools import RemoteToolService
from .transport import SessionTransport

logger = logging.getLogger("toolgate.server.sessions")


class SessionRegistry:
    """Owns every live transport, at most one per identifier.

    Check-then-insert in :meth:`get_or_create` runs under a single lock with no
    suspension point inside it, so concurrent first-contact requests for the
    same identifier always observe the same transport.
    """

    def __init__(
        self,
        service: RemoteToolService,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._clock = clock
        self._transports: dict[str, SessionTransport] = {}
        self._lock = threading.Lock()

    @property
    def service(self) -> RemoteToolService:
        return self._service

    def get_or_create(self, session_id: str) -> SessionTransport:
        """Return the transport for *session_id*, creating it on first contact."""
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        with self._lock:
            transport = self._transports.get(session_id)
            if transport is None:
                transport = SessionTransport(session_id, self._service, clock=self._clock)
                self._transports[session_id] = transport
                created = True
            else:
                created = False
        if created:
            logger.info("Session %s created", session_id)
        return transport

    def get(self, session_id: Optional[str]) -> Optional[SessionTransport]:
        """Look up a transport without creating one."""
        if not session_id:
            return None
        with self._lock:
            return self._transports.get(session_id)

    def retire(self, session_id: str) -> bool:
        """Remove and close a session. Returns False if it was not registered."""
        with self._lock:
            transport = self._transports.pop(session_id, None)
        if transport is None:
            return False
        transport.close()
        logger.info("Session %s retired", session_id)
        return True

    def evict_idle(self, max_idle: float, now: Optional[float] = None) -> list[str]:
        """Retire sessions that have been idle for more than *max_idle* seconds.

        Sessions with a request in flight are never evicted.
        """
        now = self._clock() if now is None else now
        with self._lock:
            stale = [
                sid
                for sid, transport in self._transports.items()
                if not transport.busy and transport.idle_for(now) > max_idle
            ]
            evicted = [self._transports.pop(sid) for sid in stale]
        for transport in evicted:
            transport.close()
        if stale:
            logger.info("Evicted %d idle session(s)", len(stale))
        return stale

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._transports)

    def __len__(self) -> int:
        with self._lock:
            return len(self._transports)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._transports

    def __iter__(self) -> Iterator[str]:
        return iter(self.session_ids())

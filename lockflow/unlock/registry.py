"""
In-memory registry of live unlock sessions, addressed by signed tokens.
Uses itsdangerous so a visitor cannot address another visitor's session by guessing its id.
"""
import logging
import time

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from lockflow.unlock.config import UnlockTimings
from lockflow.unlock.errors import CollaboratorUnavailable, SessionNotFound
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.models import LockedResource
from lockflow.unlock.session import UnlockSession
from lockflow.utils.metrics import active_unlock_sessions

logger = logging.getLogger(__name__)


class UnlockSessionRegistry:
    def __init__(
        self,
        grant: ResourceAccessGrant,
        *,
        secret: str,
        ttl_seconds: int = 3600,
        max_sessions: int = 10000,
        timings: UnlockTimings | None = None,
    ) -> None:
        self._grant = grant
        self._serializer = URLSafeTimedSerializer(secret, salt="unlock-session")
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._timings = timings or UnlockTimings()
        self._sessions: dict[str, UnlockSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, resource: LockedResource) -> tuple[str, UnlockSession]:
        """New visit: fresh session in LOCKED, prior unlocks are not remembered."""
        self.prune()
        if len(self._sessions) >= self._max_sessions:
            logger.warning("unlock_session_limit_reached", extra={"count": len(self._sessions)})
            raise CollaboratorUnavailable("Too many active unlock sessions, try again later")
        session = UnlockSession(resource, self._grant, timings=self._timings)
        self._sessions[session.session_id] = session
        active_unlock_sessions.set(len(self._sessions))
        logger.info(
            "unlock_session_opened",
            extra={"resource_id": resource.id, "session_id": session.session_id},
        )
        return self._serializer.dumps(session.session_id), session

    def get(self, token: str) -> UnlockSession:
        session = self._sessions.get(self._load(token))
        if session is None or session.closed:
            raise SessionNotFound("Unlock session not found")
        session.touch()
        return session

    def close(self, token: str) -> None:
        session = self._sessions.pop(self._load(token), None)
        if session is not None:
            session.close()
        active_unlock_sessions.set(len(self._sessions))

    def prune(self, now: float | None = None) -> int:
        """Close sessions idle longer than the TTL. Returns how many were closed."""
        now = time.monotonic() if now is None else now
        expired = [
            sid for sid, s in self._sessions.items()
            if s.closed or now - s.last_activity > self._ttl
        ]
        for sid in expired:
            self._sessions.pop(sid).close()
        if expired:
            active_unlock_sessions.set(len(self._sessions))
            logger.info("unlock_sessions_pruned", extra={"count": len(expired)})
        return len(expired)

    def shutdown(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        active_unlock_sessions.set(0)

    def _load(self, token: str) -> str:
        try:
            session_id = self._serializer.loads(token, max_age=self._ttl)
        except (BadSignature, SignatureExpired):
            raise SessionNotFound("Unlock session not found") from None
        if not isinstance(session_id, str):
            raise SessionNotFound("Unlock session not found")
        return session_id

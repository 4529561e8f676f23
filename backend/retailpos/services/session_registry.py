import threading
import time
import uuid
from typing import Callable, Dict, List, Tuple

from retailpos.config import settings
from retailpos.services.return_workflow import ReturnWorkflow
from retailpos.utils.logging import get_logger

log = get_logger("sessions")


class ReturnSessionRegistry:
    """
    In-memory ``ReturnWorkflow`` instances keyed by a random session id.

    Accessed from request handlers and from the background sweep job, so the
    map is guarded by a lock. The workflows themselves are not shared between
    sessions.
    """

    def __init__(self, factory: Callable[[], ReturnWorkflow], ttl_seconds: int = None):
        self.factory = factory
        self.ttl_seconds = settings.RETURN_SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._sessions: Dict[str, Tuple[ReturnWorkflow, float]] = {}
        self._lock = threading.Lock()

    def create(self) -> Tuple[str, ReturnWorkflow]:
        session_id = uuid.uuid4().hex
        wf = self.factory()
        with self._lock:
            self._sessions[session_id] = (wf, time.monotonic())
        log.debug("session %s opened", session_id)
        return session_id, wf

    def get(self, session_id: str) -> ReturnWorkflow:
        """Return the workflow and mark it as used; raises KeyError when unknown."""
        with self._lock:
            wf, _ = self._sessions[session_id]
            self._sessions[session_id] = (wf, time.monotonic())
        return wf

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_idle(self, now: float = None) -> List[str]:
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [
                sid
                for sid, (wf, touched) in self._sessions.items()
                if now - touched > self.ttl_seconds and not wf.submitting
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            log.info("discarded %d idle return session(s)", len(expired))
        return expired

    def __len__(self):
        with self._lock:
            return len(self._sessions)

"""
Demo session registry
Sessions are created on start, started on first observer, dropped on last detach
"""

import time
import uuid
import logging
from typing import Any, Callable, Dict, Optional

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import NotFoundError
from paycall_backend.orchestrator.demo_agent import DemoAgentSession

logger = logging.getLogger(__name__)

class SessionManager:
    def __init__(
        self,
        factory: Optional[Callable[[str], DemoAgentSession]] = None,
        ttl_seconds: int = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.factory = factory
        self.ttl_seconds = ttl_seconds or settings.DEMO_SESSION_TTL
        self.clock = clock
        self.sessions: Dict[str, DemoAgentSession] = {}
        # Sessions never attached, by creation time
        self.pending: Dict[str, float] = {}

    def create(self) -> DemoAgentSession:
        if self.factory is None:
            raise RuntimeError("SessionManager has no session factory")
        self.expire_pending()

        session_id = str(uuid.uuid4())
        session = self.factory(session_id)
        self.sessions[session_id] = session
        self.pending[session_id] = self.clock()
        logger.info(f"Demo session created: {session_id}")
        return session

    def expire_pending(self) -> int:
        """Drop sessions nobody attached to within the TTL"""
        cutoff = self.clock() - self.ttl_seconds
        expired = [sid for sid, created in self.pending.items() if created <= cutoff]
        for session_id in expired:
            self.pending.pop(session_id, None)
            self.sessions.pop(session_id, None)
        if expired:
            logger.info(f"Expired {len(expired)} unattached demo sessions")
        return len(expired)

    def get(self, session_id: str) -> DemoAgentSession:
        self.expire_pending()
        session = self.sessions.get(session_id)
        if not session:
            raise NotFoundError("Session not found", "SESSION_NOT_FOUND", {"sessionId": session_id})
        return session

    async def attach(self, session_id: str, observer: Any) -> DemoAgentSession:
        """Add an observer and kick off the workflow if this is the first one"""
        session = self.get(session_id)
        self.pending.pop(session_id, None)
        await session.broadcaster.add_client(observer)
        session.start()
        return session

    def detach(self, session_id: str, observer: Any):
        session = self.sessions.get(session_id)
        if not session:
            return
        session.broadcaster.remove_client(observer)
        if session.broadcaster.client_count == 0:
            # The workflow task, if any, keeps running to completion
            self.sessions.pop(session_id, None)
            self.pending.pop(session_id, None)
            logger.info(f"Demo session torn down: {session_id}")

    def __len__(self) -> int:
        return len(self.sessions)

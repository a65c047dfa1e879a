"""In-memory store for guard sessions.

A guard session keeps a credential, the token derived from it and an
``enabled`` flag. Sessions are plain records; nothing is scheduled for
them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from cadence_cli.errors import NotFoundError
from cadence_cli.scheduler.registry import utcnow

logger = logging.getLogger(__name__)


@dataclass
class GuardSession:
    """A stored credential session."""

    user_id: str
    credential: str
    access_token: str
    id: str = field(default_factory=lambda: uuid4().hex)
    enabled: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_api(self) -> Dict[str, Any]:
        """Public view of the session; the credential and token stay private."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "enabled": self.enabled,
            "createdAt": self.created_at.isoformat(),
        }


class GuardSessionStore:
    """Session id to GuardSession mapping."""

    def __init__(self) -> None:
        self._sessions: Dict[str, GuardSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: str, credential: str, access_token: str) -> GuardSession:
        session = GuardSession(
            user_id=user_id,
            credential=credential,
            access_token=access_token,
        )
        self._sessions[session.id] = session
        logger.info(f"Created guard session {session.id} for user {user_id}")
        return session

    def get(self, session_id: str) -> Optional[GuardSession]:
        return self._sessions.get(session_id)

    def list_all(self) -> List[GuardSession]:
        return list(self._sessions.values())

    def set_enabled(self, session_id: str, enabled: bool) -> GuardSession:
        """Flip the enabled flag of a session.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found", details={"sessionId": session_id})
        session.enabled = enabled
        logger.info(f"Guard session {session_id} {'enabled' if enabled else 'disabled'}")
        return session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

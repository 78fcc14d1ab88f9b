"""In-memory research session notes (lost on restart)."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SESSION_ACTIONS = ("save", "load", "list", "delete")


class SessionNotFoundError(KeyError):
    """No session stored under the requested name."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f'Research session "{self.name}" not found.'


@dataclass
class ResearchSession:
    name: str
    content: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class ResearchSessionStore:
    """Named notes saved by the research_session_manager tool."""

    def __init__(self):
        self._sessions: Dict[str, ResearchSession] = {}

    def save(self, name: str, content: str) -> ResearchSession:
        name = (name or "").strip()
        if not name or not content:
            raise ValueError("Session name and content required for save action")
        session = ResearchSession(
            name=name,
            content=content,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._sessions[name] = session
        logger.info(f"[sessions] Saved '{name}' ({len(content)} chars)")
        return session

    def load(self, name: str) -> ResearchSession:
        if not name:
            raise ValueError("Session name required for load action")
        session = self._sessions.get(name.strip())
        if session is None:
            raise SessionNotFoundError(name)
        return session

    def get(self, name: str) -> Optional[ResearchSession]:
        return self._sessions.get((name or "").strip())

    def list(self) -> List[str]:
        return list(self._sessions.keys())

    def delete(self, name: str) -> None:
        if not name:
            raise ValueError("Session name required for delete action")
        if self._sessions.pop(name.strip(), None) is None:
            raise SessionNotFoundError(name)
        logger.info(f"[sessions] Deleted '{name}'")

    def __len__(self) -> int:
        return len(self._sessions)

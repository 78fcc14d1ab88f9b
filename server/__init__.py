from .app import build_server, register_resources, register_tools
from .resources import ResourceReaders
from .sessions import ResearchSessionStore, SessionNotFoundError
from .tools import ResearchTools

__all__ = [
    "build_server",
    "register_resources",
    "register_tools",
    "ResourceReaders",
    "ResearchSessionStore",
    "SessionNotFoundError",
    "ResearchTools",
]

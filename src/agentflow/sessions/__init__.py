"""Sessions module - Persisted chat history."""

from .models import Session, SessionMessage, SessionMetadata, SessionRole, to_messages
from .store import MAX_SESSIONS, SessionStore

__all__ = [
	"Session",
	"SessionMessage",
	"SessionMetadata",
	"SessionRole",
	"SessionStore",
	"MAX_SESSIONS",
	"to_messages",
]

"""
Session Models - Pydantic schemas for persisted chat sessions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..types import Message, Role


class SessionRole(str, Enum):
	"""Author of a persisted message. "skill" marks skill output in the REPL."""
	USER = "user"
	ASSISTANT = "assistant"
	SYSTEM = "system"
	SKILL = "skill"


def _now() -> str:
	return datetime.now().isoformat()


class SessionMessage(BaseModel):
	"""A single persisted message."""
	role: SessionRole
	content: str
	timestamp: str = Field(default_factory=_now)

	@classmethod
	def from_message(cls, message: Message) -> "SessionMessage":
		return cls(role=SessionRole(message.role.value), content=message.content)


class Session(BaseModel):
	"""A saved conversation tied to a working directory."""
	id: str = Field(description="Unique session identifier")
	name: Optional[str] = Field(default=None, description="Optional human-friendly name")
	messages: list[SessionMessage] = Field(default_factory=list)
	workdir: str = Field(description="Directory the session was started in")
	provider: Optional[str] = Field(default=None)
	model: Optional[str] = Field(default=None)
	created_at: str = Field(default_factory=_now)
	updated_at: str = Field(default_factory=_now)


class SessionMetadata(BaseModel):
	"""Listing view of a session without its messages."""
	id: str
	name: Optional[str] = None
	workdir: str
	provider: Optional[str] = None
	model: Optional[str] = None
	message_count: int = 0
	created_at: str
	updated_at: str


def to_messages(session: Session) -> list[Message]:
	"""Conversation messages to resend to a provider (user/assistant only)."""
	return [
		Message(Role(m.role.value), m.content)
		for m in session.messages
		if m.role in (SessionRole.USER, SessionRole.ASSISTANT)
	]

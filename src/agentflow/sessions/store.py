"""
Session Store - SQLite-backed chat session persistence.

Features:
- Create, save, rename and delete sessions
- Lookup by id, name, id prefix or name substring
- Latest session per working directory
- Retention cleanup keeping the most recently updated sessions
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from .models import Session, SessionMessage, SessionMetadata

logger = logging.getLogger(__name__)

MAX_SESSIONS = 50


class SessionStore:
	"""
	SQLite-backed session storage.

	Usage:
		store = SessionStore(config.sessions_db_path)
		await store.init()

		session = await store.create(os.getcwd(), "ollama", "llama3.3:70b")
		await store.add_message(session, SessionMessage(role="user", content="hi"))

		latest = await store.get_latest(os.getcwd())
	"""

	def __init__(self, db_path: str | Path):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None

	async def init(self):
		"""Open the database and create the schema."""
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS sessions (
				id TEXT PRIMARY KEY,
				name TEXT,
				workdir TEXT NOT NULL,
				provider TEXT,
				model TEXT,
				message_count INTEGER NOT NULL DEFAULT 0,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL,
				updated_at TEXT NOT NULL
			)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_sessions_updated ON sessions(updated_at)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_sessions_workdir ON sessions(workdir)
		""")

		await self._db.commit()
		logger.info(f"Session store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	async def create(
		self,
		workdir: str,
		provider: Optional[str] = None,
		model: Optional[str] = None,
	) -> Session:
		"""Create and persist an empty session."""
		session = Session(id=uuid.uuid4().hex[:12], workdir=workdir, provider=provider, model=model)
		await self.save(session, touch=False)
		logger.info(f"Created session {session.id} in {workdir}")
		return session

	async def save(self, session: Session, touch: bool = True) -> None:
		"""Insert or update a session. Bumps updated_at unless touch is False."""
		db = await self._conn()
		if touch:
			session.updated_at = datetime.now().isoformat()

		await db.execute(
			"""
			INSERT INTO sessions (id, name, workdir, provider, model, message_count, data, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
			ON CONFLICT(id) DO UPDATE SET
				name = excluded.name,
				workdir = excluded.workdir,
				provider = excluded.provider,
				model = excluded.model,
				message_count = excluded.message_count,
				data = excluded.data,
				updated_at = excluded.updated_at
			""",
			(
				session.id,
				session.name,
				session.workdir,
				session.provider,
				session.model,
				len(session.messages),
				session.model_dump_json(),
				session.created_at,
				session.updated_at,
			)
		)
		await db.commit()

	async def get(self, session_id: str) -> Optional[Session]:
		db = await self._conn()
		async with db.execute("SELECT data FROM sessions WHERE id = ?", (session_id,)) as cursor:
			row = await cursor.fetchone()
		if not row:
			return None
		return Session.model_validate_json(row["data"])

	async def list(self) -> list[SessionMetadata]:
		"""All sessions, most recently updated first."""
		db = await self._conn()
		async with db.execute(
			"""
			SELECT id, name, workdir, provider, model, message_count, created_at, updated_at
			FROM sessions ORDER BY updated_at DESC, rowid DESC
			"""
		) as cursor:
			rows = await cursor.fetchall()
		return [SessionMetadata(**dict(row)) for row in rows]

	async def find(self, name_or_id: str) -> Optional[Session]:
		"""
		Resolve a session reference.

		Tries, in order: exact id, exact name, id prefix, case-insensitive
		name substring. Ties go to the most recently updated session.
		"""
		sessions = await self.list()
		needle = name_or_id.lower()
		matchers = (
			lambda s: s.id == name_or_id,
			lambda s: s.name == name_or_id,
			lambda s: s.id.startswith(name_or_id),
			lambda s: bool(s.name) and needle in s.name.lower(),
		)
		for matches in matchers:
			for meta in sessions:
				if matches(meta):
					return await self.get(meta.id)
		return None

	async def delete(self, session_id: str) -> bool:
		db = await self._conn()
		cursor = await db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
		await db.commit()
		return cursor.rowcount > 0

	async def rename(self, session_id: str, name: str) -> bool:
		session = await self.get(session_id)
		if session is None:
			return False
		session.name = name
		await self.save(session)
		return True

	async def add_message(self, session: Session, message: SessionMessage) -> None:
		"""Append a message and persist the session."""
		session.messages.append(message)
		await self.save(session)

	async def get_latest(self, workdir: str) -> Optional[Session]:
		"""Most recently updated session started in workdir."""
		db = await self._conn()
		async with db.execute(
			"SELECT data FROM sessions WHERE workdir = ? ORDER BY updated_at DESC, rowid DESC LIMIT 1",
			(workdir,)
		) as cursor:
			row = await cursor.fetchone()
		if not row:
			return None
		return Session.model_validate_json(row["data"])

	async def cleanup(self, max_sessions: int = MAX_SESSIONS) -> int:
		"""
		Delete all but the max_sessions most recently updated sessions.

		Returns:
			Number of sessions deleted
		"""
		sessions = await self.list()
		deleted = 0
		for meta in sessions[max_sessions:]:
			if await self.delete(meta.id):
				deleted += 1
		if deleted:
			logger.info(f"Cleaned up {deleted} old sessions")
		return deleted

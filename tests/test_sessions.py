"""Tests for SQLite-backed session persistence."""

from pathlib import Path

import pytest
import pytest_asyncio

from agentflow.sessions import Session, SessionMessage, SessionRole, SessionStore, to_messages
from agentflow.types import Message


@pytest_asyncio.fixture
async def store(tmp_path: Path):
	store = SessionStore(tmp_path / "db" / "sessions.db")
	await store.init()
	yield store
	await store.close()


class TestSessionModels:
	"""Pydantic session models."""

	def test_from_message(self):
		message = SessionMessage.from_message(Message.assistant("hello"))
		assert message.role == SessionRole.ASSISTANT
		assert message.content == "hello"
		assert message.timestamp

	def test_to_messages_drops_skill_and_system(self):
		session = Session(id="abc", workdir="/w", messages=[
			SessionMessage(role="system", content="sys"),
			SessionMessage(role="user", content="hi"),
			SessionMessage(role="skill", content="skill output"),
			SessionMessage(role="assistant", content="hello"),
		])
		assert to_messages(session) == [Message.user("hi"), Message.assistant("hello")]

	def test_json_round_trip(self):
		session = Session(id="abc", name="work", workdir="/w", messages=[SessionMessage(role="user", content="hi")])
		assert Session.model_validate_json(session.model_dump_json()) == session


class TestSessionStore:
	"""SessionStore CRUD and lookup."""

	@pytest.mark.asyncio
	async def test_init_creates_parent_dir(self, store: SessionStore, tmp_path: Path):
		assert (tmp_path / "db" / "sessions.db").exists()

	@pytest.mark.asyncio
	async def test_create_and_get(self, store: SessionStore):
		session = await store.create("/work", "ollama", "llama3")

		assert len(session.id) == 12
		loaded = await store.get(session.id)
		assert loaded == session
		assert await store.get("missing") is None

	@pytest.mark.asyncio
	async def test_add_message_persists(self, store: SessionStore):
		session = await store.create("/work")
		await store.add_message(session, SessionMessage(role="user", content="hi"))
		await store.add_message(session, SessionMessage(role="assistant", content="hello"))

		loaded = await store.get(session.id)
		assert [m.content for m in loaded.messages] == ["hi", "hello"]
		assert (await store.list())[0].message_count == 2

	@pytest.mark.asyncio
	async def test_list_most_recent_first(self, store: SessionStore):
		first = await store.create("/a")
		second = await store.create("/b")
		assert [m.id for m in await store.list()] == [second.id, first.id]

		await store.add_message(first, SessionMessage(role="user", content="bump"))
		assert [m.id for m in await store.list()] == [first.id, second.id]

	@pytest.mark.asyncio
	async def test_rename(self, store: SessionStore):
		session = await store.create("/work")
		assert await store.rename(session.id, "refactor") is True
		assert (await store.get(session.id)).name == "refactor"
		assert await store.rename("missing", "x") is False

	@pytest.mark.asyncio
	async def test_find_order(self, store: SessionStore):
		named = await store.create("/work")
		await store.rename(named.id, "Cache Refactor")
		other = await store.create("/work")

		assert (await store.find(named.id)).id == named.id
		assert (await store.find("Cache Refactor")).id == named.id
		assert (await store.find(other.id[:6])).id == other.id
		assert (await store.find("refactor")).id == named.id
		assert await store.find("nothing-like-this") is None

	@pytest.mark.asyncio
	async def test_exact_name_beats_id_prefix(self, store: SessionStore):
		target = await store.create("/work")
		decoy = await store.create("/work")
		await store.rename(decoy.id, target.id[:4])

		assert (await store.find(target.id[:4])).id == decoy.id

	@pytest.mark.asyncio
	async def test_get_latest_per_workdir(self, store: SessionStore):
		old = await store.create("/project")
		await store.create("/elsewhere")
		newer = await store.create("/project")

		assert (await store.get_latest("/project")).id == newer.id
		await store.add_message(old, SessionMessage(role="user", content="hi"))
		assert (await store.get_latest("/project")).id == old.id
		assert await store.get_latest("/nowhere") is None

	@pytest.mark.asyncio
	async def test_delete(self, store: SessionStore):
		session = await store.create("/work")
		assert await store.delete(session.id) is True
		assert await store.delete(session.id) is False
		assert await store.get(session.id) is None

	@pytest.mark.asyncio
	async def test_cleanup_keeps_most_recent(self, store: SessionStore):
		created = [await store.create("/work") for _ in range(5)]

		assert await store.cleanup(max_sessions=2) == 3
		remaining = [m.id for m in await store.list()]
		assert remaining == [created[4].id, created[3].id]
		assert await store.cleanup(max_sessions=2) == 0

	@pytest.mark.asyncio
	async def test_lazy_connect(self, tmp_path: Path):
		store = SessionStore(tmp_path / "lazy.db")
		session = await store.create("/work")
		assert (await store.get(session.id)).id == session.id
		await store.close()

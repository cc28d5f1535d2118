"""Tests for the project stores (in-memory and SQLite)."""

import asyncio
import os
import sys

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from backend.database import Base, _enable_foreign_keys
from backend.projects.models import ChatMessage
from backend.projects.store import InMemoryProjectStore, SQLiteProjectStore


def _sqlite_store():
    import backend.models_db  # noqa: F401
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    event.listen(engine, "connect", _enable_foreign_keys)
    Base.metadata.create_all(bind=engine)
    return SQLiteProjectStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        return InMemoryProjectStore()
    return _sqlite_store()


class TestProjectStore:
    """Behaviour shared by both stores."""

    def test_create_and_get(self, store):
        async def run():
            project_id = await store.create("Site")
            return await store.get(project_id)

        assert asyncio.run(run()) == {"files": {}, "messages": []}

    def test_missing(self, store):
        assert asyncio.run(store.get("nope")) is None
        assert asyncio.run(store.replace_file("nope", "a", "b")) is False

    def test_replace_file_last_write_wins_keeps_order(self, store):
        async def run():
            project_id = await store.create("Site")
            await store.replace_file(project_id, "src/App.jsx", "one")
            await store.replace_file(project_id, "src/index.css", "css")
            await store.replace_file(project_id, "src/App.jsx", "two")
            return await store.get_project(project_id)

        project = asyncio.run(run())
        assert list(project.files.items()) == [("src/App.jsx", "two"), ("src/index.css", "css")]

    def test_messages_and_credits(self, store):
        async def run():
            project_id = await store.create("Site")
            await store.append_messages(project_id, [ChatMessage(role="user", content="hi")])
            await store.append_messages(project_id, [ChatMessage(role="assistant", content="Updated 1 file")])
            await store.add_credits(project_id, 0.5)
            await store.add_credits(project_id, 0.25)
            return await store.get_project(project_id)

        project = asyncio.run(run())
        assert [m.content for m in project.messages] == ["hi", "Updated 1 file"]
        assert project.credits_used == pytest.approx(0.75)

    def test_claim_interrupted(self, store):
        async def run():
            project_id = await store.create("Site")
            before = await store.claim_interrupted(project_id)
            await store.set_generating(project_id, True)
            first = await store.claim_interrupted(project_id)
            second = await store.claim_interrupted(project_id)
            return before, first, second

        assert asyncio.run(run()) == (False, True, False)

    def test_delete(self, store):
        async def run():
            project_id = await store.create("Site")
            await store.replace_file(project_id, "src/App.jsx", "x")
            deleted = await store.delete_project(project_id)
            return deleted, await store.get(project_id), await store.delete_project(project_id)

        assert asyncio.run(run()) == (True, None, False)

    def test_list_by_owner(self, store):
        async def run():
            await store.create_project(name="a", owner_id="u1")
            await store.create_project(name="b", owner_id="u2")
            mine = await store.list_projects("u1")
            everyone = await store.list_projects()
            return [p.name for p in mine], len(everyone)

        assert asyncio.run(run()) == (["a"], 2)

"""
Unit Tests: Artifact Version Store
==================================

Covers both backends:
1. Monotonic, gap-free version numbering
2. Compare-and-swap on the expected current version
3. Version listing and per-chat listing
"""

import asyncio

import pytest

from app.core.exceptions import ErrorCode, OperationException
from app.db.session import create_engine_for_url, create_session_factory, init_db
from app.schemas.artifact import ArtifactKind
from app.services.artifact_store import InMemoryArtifactStore, SQLAlchemyArtifactStore


@pytest.fixture
async def sqlalchemy_store(tmp_path):
    """SQLAlchemy store on a throwaway SQLite file"""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'artifacts.db'}")
    assert await init_db(engine)
    yield SQLAlchemyArtifactStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture(params=["memory", "sqlalchemy"])
async def store(request, sqlalchemy_store):
    if request.param == "memory":
        return InMemoryArtifactStore()
    return sqlalchemy_store


async def save(store, artifact_id="art-1", content="v", **kwargs):
    return await store.save_version(
        artifact_id,
        content=content,
        title=kwargs.pop("title", "Reverse"),
        kind=kwargs.pop("kind", ArtifactKind.CODE),
        **kwargs
    )


class TestArtifactVersionStore:
    """Behaviour shared by every store backend"""

    @pytest.mark.asyncio
    async def test_first_save_is_version_one(self, store):
        """The first save of an artifact gets version 1"""
        record = await save(store, content="print('hi')", user_id="u1", chat_id="c1")

        assert record.version_number == 1
        assert record.kind == ArtifactKind.CODE
        assert record.content == "print('hi')"
        assert record.user_id == "u1"

    @pytest.mark.asyncio
    async def test_versions_increase_without_gaps(self, store):
        """Each save appends exactly one version"""
        for i in range(4):
            await save(store, content=f"content {i}")

        versions = await store.list_versions("art-1")

        assert [v.version_number for v in versions] == [1, 2, 3, 4]
        assert [v.content for v in versions] == [f"content {i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_get_current_and_get_version(self, store):
        """Current is the highest version; old versions stay readable"""
        await save(store, content="one")
        await save(store, content="two", parent_version_id=1, metadata={"updateType": "update"})

        current = await store.get_current("art-1")
        first = await store.get_version("art-1", 1)

        assert current.version_number == 2
        assert current.parent_version_id == 1
        assert current.metadata == {"updateType": "update"}
        assert first.content == "one"

    @pytest.mark.asyncio
    async def test_unknown_artifact_returns_none(self, store):
        """Reads of unknown artifacts return None or an empty list"""
        assert await store.get_current("missing") is None
        assert await store.get_version("missing", 1) is None
        assert await store.list_versions("missing") == []

    @pytest.mark.asyncio
    async def test_expected_version_mismatch_is_rejected(self, store):
        """A save based on a stale read fails with VERSION_CONFLICT and writes nothing"""
        await save(store, content="one")
        await save(store, content="two")

        with pytest.raises(OperationException) as exc_info:
            await save(store, content="stale", expected_current_version=1)

        assert exc_info.value.code == ErrorCode.VERSION_CONFLICT
        assert (await store.get_current("art-1")).version_number == 2

    @pytest.mark.asyncio
    async def test_expected_zero_means_new_artifact(self, store):
        """expected_current_version=0 only succeeds for an artifact that does not exist"""
        record = await save(store, expected_current_version=0)
        assert record.version_number == 1

        with pytest.raises(OperationException):
            await save(store, expected_current_version=0)

    @pytest.mark.asyncio
    async def test_list_by_chat_returns_latest_versions(self, store):
        """Per-chat listing returns the latest version of each artifact in that chat"""
        await save(store, "a", content="a1", chat_id="chat-1")
        await save(store, "a", content="a2", chat_id="chat-1")
        await save(store, "b", content="b1", chat_id="chat-1", kind=ArtifactKind.DIAGRAM)
        await save(store, "c", content="c1", chat_id="chat-2")

        records = await store.list_by_chat("chat-1")

        assert {(r.id, r.version_number) for r in records} == {("a", 2), ("b", 1)}


class TestInMemoryArtifactStore:
    """In-memory specifics"""

    @pytest.mark.asyncio
    async def test_concurrent_saves_get_distinct_numbers(self):
        """Concurrent writers never reuse a version number"""
        store = InMemoryArtifactStore()

        await asyncio.gather(*(save(store, content=str(i)) for i in range(10)))

        versions = await store.list_versions("art-1")
        assert [v.version_number for v in versions] == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_concurrent_cas_lets_one_writer_win(self):
        """Two writers that read the same version: exactly one save succeeds"""
        store = InMemoryArtifactStore()
        await save(store, content="base")

        results = await asyncio.gather(
            save(store, content="left", expected_current_version=1),
            save(store, content="right", expected_current_version=1),
            return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, OperationException)]
        assert len(failures) == 1
        assert (await store.get_current("art-1")).version_number == 2

"""Tests for the document session — debounced hashing and autosave."""

import asyncio

import pytest

from docforge.config import EditorConfig
from docforge.crypto.canonical import hash_document
from docforge.editor.session import Debouncer, DocumentSession, SaveStatus
from docforge.models.block import Block, BlockType
from docforge.models.document import DocumentState
from docforge.persistence.document_store import (
    DocumentMeta,
    DocumentNotFoundError,
    InMemoryDocumentStore,
    StorageError,
)

FAST = EditorConfig(hash_debounce_seconds=0, save_debounce_seconds=0)
SLOW = EditorConfig(hash_debounce_seconds=30, save_debounce_seconds=30)


def _make_store() -> InMemoryDocumentStore:
    doc = DocumentState(
        id="doc_1",
        title="Agreement",
        blocks=[Block(id="a", type=BlockType.TEXT, content="Hello")],
    )
    return InMemoryDocumentStore([doc])


class FailingStore(InMemoryDocumentStore):
    def save(self, document: DocumentState) -> DocumentMeta:
        raise StorageError("disk full")


class BrokenStore(InMemoryDocumentStore):
    def save(self, document: DocumentState) -> DocumentMeta:
        raise RuntimeError("driver crashed")


class TestDebouncer:
    def test_coalesces_triggers(self) -> None:
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        async def scenario() -> None:
            debouncer = Debouncer(0.01, callback)
            for _ in range(5):
                debouncer.trigger()
            assert debouncer.pending
            await debouncer.drain()
            assert not debouncer.pending

        asyncio.run(scenario())
        assert calls == [1]

    def test_flush_runs_immediately(self) -> None:
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        async def scenario() -> None:
            debouncer = Debouncer(30, callback)
            debouncer.trigger()
            await debouncer.flush()
            assert not debouncer.pending

        asyncio.run(scenario())
        assert calls == [1]

    def test_cancel_drops_pending_run(self) -> None:
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        async def scenario() -> None:
            debouncer = Debouncer(30, callback)
            debouncer.trigger()
            debouncer.cancel()
            await debouncer.flush()

        asyncio.run(scenario())
        assert calls == []

    def test_failing_callback_is_logged(self, caplog) -> None:
        async def callback() -> None:
            raise RuntimeError("boom")

        async def scenario() -> None:
            debouncer = Debouncer(0, callback)
            debouncer.trigger()
            await debouncer.drain()
            await asyncio.sleep(0)

        with caplog.at_level("ERROR", logger="docforge.editor.session"):
            asyncio.run(scenario())
        assert "Debounced callback failed: boom" in caplog.text


class TestOpen:
    def test_missing_document(self) -> None:
        async def scenario() -> None:
            await DocumentSession.open(InMemoryDocumentStore(), "nope")

        with pytest.raises(DocumentNotFoundError):
            asyncio.run(scenario())

    def test_fresh_session_is_clean(self) -> None:
        async def scenario() -> DocumentSession:
            return await DocumentSession.open(_make_store(), "doc_1", config=FAST, user="Ann")

        session = asyncio.run(scenario())
        assert session.save_status == SaveStatus.IDLE
        assert not session.is_dirty
        assert session.editor.user == "Ann"


class TestAutosave:
    def test_edit_is_hashed_and_saved(self) -> None:
        store = _make_store()

        async def scenario() -> DocumentSession:
            session = await DocumentSession.open(store, "doc_1", config=FAST)
            session.editor.update_block("a", {"content": "Changed"})
            assert session.save_status == SaveStatus.PENDING
            assert session.is_dirty
            await session.wait_idle()
            return session

        session = asyncio.run(scenario())
        assert session.save_status == SaveStatus.SAVED
        assert not session.is_dirty
        saved = store.load("doc_1")
        assert saved.blocks[0].content == "Changed"
        assert saved.sha256 == hash_document(saved)

    def test_burst_of_edits_ends_with_fresh_hash(self) -> None:
        store = _make_store()

        async def scenario() -> DocumentSession:
            session = await DocumentSession.open(store, "doc_1", config=FAST)
            for word in ("one", "two", "three"):
                session.editor.update_block("a", {"content": word}, record_history=False)
            await session.wait_idle()
            return session

        session = asyncio.run(scenario())
        document = session.editor.document
        assert document.sha256 == hash_document(document)
        assert store.load("doc_1").blocks[0].content == "three"

    def test_failed_save_reports_error(self, caplog) -> None:
        store = FailingStore([_make_store().load("doc_1")])

        async def scenario() -> DocumentSession:
            session = await DocumentSession.open(store, "doc_1", config=FAST)
            session.editor.delete_block("a")
            await session.wait_idle()
            return session

        with caplog.at_level("ERROR", logger="docforge.editor.session"):
            session = asyncio.run(scenario())
        assert session.save_status == SaveStatus.ERROR
        assert session.last_error == "disk full"
        assert session.is_dirty
        assert session.editor.document.blocks == []
        assert "Save failed" in caplog.text

    def test_unexpected_store_error_reports_error(self, caplog) -> None:
        store = BrokenStore([_make_store().load("doc_1")])

        async def scenario() -> DocumentSession:
            session = await DocumentSession.open(store, "doc_1", config=FAST)
            session.editor.delete_block("a")
            await session.wait_idle()
            return session

        with caplog.at_level("ERROR", logger="docforge.editor.session"):
            session = asyncio.run(scenario())
        assert session.save_status == SaveStatus.ERROR
        assert session.last_error == "RuntimeError: driver crashed"
        assert session.is_dirty
        assert "Unexpected error saving document doc_1" in caplog.text


class TestExplicitSave:
    def test_save_now_flushes_hash(self) -> None:
        store = _make_store()

        async def scenario() -> SaveStatus:
            session = await DocumentSession.open(store, "doc_1", config=SLOW)
            session.editor.update_block("a", {"content": "Now"})
            status = await session.save_now()
            await session.close()
            return status

        assert asyncio.run(scenario()) == SaveStatus.SAVED
        saved = store.load("doc_1")
        assert saved.blocks[0].content == "Now"
        assert saved.sha256 == hash_document(saved)

    def test_close_persists_and_unsubscribes(self) -> None:
        store = _make_store()

        async def scenario() -> DocumentSession:
            session = await DocumentSession.open(store, "doc_1", config=SLOW)
            session.editor.add_block(BlockType.SIGNATURE)
            assert await session.close() == SaveStatus.SAVED
            session.editor.delete_block("a")
            return session

        session = asyncio.run(scenario())
        assert session.save_status == SaveStatus.SAVED
        assert [b.id for b in store.load("doc_1").blocks][0] == "a"
        assert len(store.load("doc_1").blocks) == 2

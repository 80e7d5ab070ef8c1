"""Document session — debounced hashing and autosave around an editor.

Edits are applied synchronously by the DocumentEditor. The session
listens for changes and runs the slow work in the background:

- hash: after hash_debounce_seconds of quiet, the content hash is
  computed on a worker thread and applied only if the editor version
  still equals the version captured when the work started.
- save: after save_debounce_seconds of quiet, a snapshot is written to
  the DocumentStore on a worker thread. Saves are serialized by a lock;
  a newer debounced save supersedes an older pending one.

Each debouncer holds at most one pending timer, reset on every change.
Save failures surface as SaveStatus.ERROR; the in-memory document is
never rolled back. Retry is save_now() or the next debounce cycle.

A session must be driven from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from docforge.config import EditorConfig
from docforge.crypto.canonical import hash_document
from docforge.editor.document_editor import DocumentEditor
from docforge.persistence.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    StorageError,
)

logger = logging.getLogger(__name__)


class SaveStatus(str, enum.Enum):
    """User-visible persistence state of the open document."""
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class Debouncer:
    """Runs an async callback once triggers have been quiet for delay seconds.

    At most one timer is pending; trigger() restarts it. A callback that
    has already started is not cancelled by later triggers.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self._delay = delay
        self._callback = callback
        self._timer: Optional[asyncio.Task[None]] = None
        self._running: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire())
        self._timer.add_done_callback(self._report)

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    @staticmethod
    def _report(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced callback failed: %s", exc, exc_info=exc)

    async def _fire(self) -> None:
        await asyncio.sleep(self._delay)
        task = asyncio.current_task()
        # Detach from the timer slot so a new trigger cannot cancel this run
        self._timer = None
        if task is not None:
            self._running.add(task)
            task.add_done_callback(self._running.discard)
        await self._callback()

    async def flush(self) -> None:
        """Run a pending callback now instead of waiting for the timer."""
        if self.pending:
            self.cancel()
            await self._callback()

    async def drain(self) -> None:
        """Wait for the pending timer and any started callbacks."""
        while self.pending or self._running:
            waiting = list(self._running)
            if self._timer is not None:
                waiting.append(self._timer)
            await asyncio.gather(*waiting, return_exceptions=True)


class DocumentSession:
    """One open document: editor + store + background hash and save.

    Usage:
        session = await DocumentSession.open(store, "doc_123")
        session.editor.add_block(BlockType.INPUT)
        ...
        await session.close()
    """

    def __init__(
        self,
        editor: DocumentEditor,
        store: DocumentStore,
        config: Optional[EditorConfig] = None,
    ) -> None:
        self._config = config or EditorConfig.default()
        self._editor = editor
        self._store = store
        self._hash_debouncer = Debouncer(self._config.hash_debounce_seconds, self._compute_hash)
        self._save_debouncer = Debouncer(self._config.save_debounce_seconds, self._save)
        self._save_lock = asyncio.Lock()
        self._save_status = SaveStatus.IDLE
        self._last_error: Optional[str] = None
        # Bumped on edits and on applied hashes: anything a save must capture
        self._revision = 0
        self._saved_revision = 0
        self._unsubscribe = editor.subscribe(self._on_change)

    @classmethod
    async def open(
        cls,
        store: DocumentStore,
        document_id: str,
        config: Optional[EditorConfig] = None,
        user: Optional[str] = None,
    ) -> DocumentSession:
        """Load a document once and start a session on it.

        Raises:
            DocumentNotFoundError: if the store has no such document.
            StorageError: if the store cannot be read.
        """
        document = await asyncio.to_thread(store.load, document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        config = config or EditorConfig.default()
        editor = DocumentEditor(document, config=config, user=user)
        return cls(editor, store, config=config)

    @property
    def editor(self) -> DocumentEditor:
        return self._editor

    @property
    def save_status(self) -> SaveStatus:
        return self._save_status

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def is_dirty(self) -> bool:
        return self._saved_revision != self._revision

    def _on_change(self, editor: DocumentEditor) -> None:
        self._revision += 1
        self._save_status = SaveStatus.PENDING
        self._hash_debouncer.trigger()
        self._save_debouncer.trigger()

    async def _compute_hash(self) -> None:
        version = self._editor.version
        document = self._editor.snapshot()
        digest = await asyncio.to_thread(hash_document, document)
        if not self._editor.apply_hash(digest, version):
            logger.debug("Discarded stale hash for version %d", version)
            return
        if digest != document.sha256:
            self._revision += 1
            self._save_status = SaveStatus.PENDING
            self._save_debouncer.trigger()

    async def _save(self) -> None:
        async with self._save_lock:
            revision = self._revision
            document = self._editor.snapshot()
            self._save_status = SaveStatus.SAVING
            try:
                await asyncio.to_thread(self._store.save, document)
            except StorageError as exc:
                logger.error("Save failed for document %s: %s", document.id, exc)
                self._last_error = str(exc)
                self._save_status = SaveStatus.ERROR
                return
            except Exception as exc:
                logger.exception("Unexpected error saving document %s", document.id)
                self._last_error = f"{type(exc).__name__}: {exc}"
                self._save_status = SaveStatus.ERROR
                return
            self._last_error = None
            self._saved_revision = revision
            self._save_status = (
                SaveStatus.SAVED if self._revision == revision else SaveStatus.PENDING
            )

    async def save_now(self) -> SaveStatus:
        """Flush a pending hash, then save immediately."""
        await self._hash_debouncer.flush()
        self._save_debouncer.cancel()
        await self._save()
        return self._save_status

    async def wait_idle(self) -> None:
        """Wait until no hash or save work is pending or running."""
        while self._hash_debouncer.pending or self._save_debouncer.pending:
            await self._hash_debouncer.drain()
            await self._save_debouncer.drain()
        await self._hash_debouncer.drain()
        await self._save_debouncer.drain()

    async def close(self) -> SaveStatus:
        """Stop listening and persist any unsaved state."""
        self._unsubscribe()
        if self.is_dirty or self._hash_debouncer.pending:
            await self.save_now()
        self._hash_debouncer.cancel()
        self._save_debouncer.cancel()
        await self._hash_debouncer.drain()
        await self._save_debouncer.drain()
        return self._save_status

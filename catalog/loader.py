"""Reactive loading of catalog items from a document source.

The loader moves between ``idle``, ``loading`` and ``ready``. At most one load
cycle runs at a time. Change notifications never load on the notifying thread:
they only wake a single worker thread, so a burst of notifications during a
cycle collapses into one follow-up scan. A manual refresh that arrives while a
cycle is in flight marks the loader dirty, and the running cycle starts one
more scan when it finishes. Each completed cycle publishes a new snapshot
(revision and items together) through the :class:`CatalogItemStore` and to
subscribers.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from catalog.documents import DocumentChange, DocumentSource, DocumentStoreError
from catalog.items import CatalogItem, CatalogItemStore, CatalogSnapshot, build_catalog_item
from catalog.schema import CatalogSchema


logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[CatalogSnapshot], None]


class LoaderState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class ReactiveLoader:
    def __init__(
        self,
        source: DocumentSource,
        schema: CatalogSchema,
        store: Optional[CatalogItemStore] = None,
        *,
        debounce: float = 0.1,
    ) -> None:
        self.source = source
        self.schema = schema
        self.store = store or CatalogItemStore()
        self.debounce = debounce
        self._lock = threading.Lock()
        self._state = LoaderState.IDLE
        self._dirty = False
        self._closed = False
        self._started = False
        self._unsubscribe_source: Optional[Callable[[], None]] = None
        self._subscribers: Dict[int, SnapshotCallback] = {}
        self._wake = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._next_token = 0
        self.last_error: Optional[Exception] = None
        self.cycles = 0

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> CatalogSnapshot:
        return self.store.snapshot()

    def wait_for_revision(self, revision: int, timeout: Optional[float] = None) -> Optional[CatalogSnapshot]:
        return self.store.wait_for_revision(revision, timeout)

    def start(self) -> CatalogSnapshot:
        """Subscribe to the source, run the initial load and start the worker."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Loader has been closed")
            if self._started:
                return self.store.snapshot()
            self._started = True
        try:
            self._unsubscribe_source = self.source.subscribe(self._on_change)
        except DocumentStoreError as exc:
            # still load whatever is there; the next manual refresh retries
            logger.warning("Could not subscribe to document changes: %s", exc)
        self.request_reload()
        worker = threading.Thread(target=self._watch_loop, name="catalog-loader", daemon=True)
        with self._lock:
            self._worker = worker
        worker.start()
        return self.store.snapshot()

    def refresh(self) -> CatalogSnapshot:
        self.request_reload()
        return self.store.snapshot()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            unsubscribe, self._unsubscribe_source = self._unsubscribe_source, None
            self._subscribers.clear()
            worker, self._worker = self._worker, None
        self._wake.set()
        if unsubscribe is not None:
            unsubscribe()
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=5)
        logger.info("Loader for '%s' closed", self.schema.catalog_name)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def _on_change(self, change: DocumentChange) -> None:
        logger.debug("Change notification (%s %s)", change.kind, change.identity)
        if not self._closed:
            self._wake.set()

    def _watch_loop(self) -> None:
        while True:
            self._wake.wait()
            if self._closed:
                return
            # let a burst of writes settle before scanning
            time.sleep(self.debounce)
            self._wake.clear()
            if self._closed:
                return
            try:
                self.request_reload()
            except Exception:
                logger.exception("Background load of '%s' failed", self.schema.catalog_name)

    def request_reload(self) -> bool:
        """Run load cycles until no further change is pending.

        Returns ``False`` when the request was coalesced into a cycle already
        running on another thread, or the loader is closed.
        """
        with self._lock:
            if self._closed:
                return False
            if self._state is LoaderState.LOADING:
                self._dirty = True
                logger.debug("Load in flight for '%s'; coalescing", self.schema.catalog_name)
                return False
            self._state = LoaderState.LOADING
            self._dirty = False

        while True:
            try:
                ok = self._run_cycle()
            except BaseException:
                with self._lock:
                    self._state = LoaderState.IDLE
                    self._dirty = False
                raise
            with self._lock:
                if self._dirty and not self._closed:
                    self._dirty = False
                    continue
                if ok:
                    self._state = LoaderState.READY
                else:
                    self._state = LoaderState.IDLE
                return True

    def _build_items(self) -> List[CatalogItem]:
        items = []
        for doc in self.source.list_documents():
            items.append(build_catalog_item(doc.fields, doc.identity, self.schema))
        return items

    def _run_cycle(self) -> bool:
        try:
            items = self._build_items()
        except DocumentStoreError as exc:
            self.last_error = exc
            logger.error(
                "Load of '%s' failed, keeping revision %d: %s",
                self.schema.catalog_name,
                self.store.revision,
                exc,
            )
            return False

        snap = self.store.replace(items)
        self.last_error = None
        self.cycles += 1
        logger.info("Loaded %d items for '%s' (revision %d)", len(snap.items), self.schema.catalog_name, snap.revision)
        self._publish(snap)
        return True

    def _publish(self, snap: CatalogSnapshot) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        for cb in callbacks:
            try:
                cb(snap)
            except Exception:
                logger.exception("Snapshot subscriber failed")

"""Document sources feeding the reactive loader.

A source enumerates documents (identity + raw header fields) under one catalog
path and notifies subscribers when any of them is created, modified or
deleted. ``FileSystemDocumentSource`` reads markdown front matter and watches
the directory with watchdog; ``InMemoryDocumentSource`` backs tests and
embedding.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")
CHANGE_KINDS = frozenset({"created", "modified", "deleted", "moved"})

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*$", re.DOTALL | re.MULTILINE)


class DocumentStoreError(RuntimeError):
    """The document store could not enumerate the catalog path."""


@dataclass(frozen=True)
class Document:
    identity: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentChange:
    kind: str
    identity: Optional[str] = None


ChangeCallback = Callable[[DocumentChange], None]
Unsubscribe = Callable[[], None]


class DocumentSource(Protocol):
    def list_documents(self) -> List[Document]: ...

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe: ...


def extract_front_matter(text: str) -> Optional[str]:
    match = _FRONT_MATTER.match(text)
    if match is None:
        return None
    return match.group(1)


def parse_front_matter(text: str, *, identity: str = "") -> Dict[str, Any]:
    """Return the YAML header of a markdown document as a plain dict.

    Missing, malformed or non-mapping headers yield ``{}``.
    """
    header = extract_front_matter(text)
    if not header or not header.strip():
        return {}
    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as exc:
        logger.warning("Malformed front matter in %s: %s", identity or "<document>", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Front matter in %s is not a mapping", identity or "<document>")
        return {}
    return {str(k): v for k, v in data.items()}


def is_markdown(path: str | Path) -> bool:
    return str(path).lower().endswith(MARKDOWN_SUFFIXES)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, root: Path, callback: ChangeCallback) -> None:
        super().__init__()
        self._root = root
        self._callback = callback

    def _identity(self, path: str) -> str:
        try:
            return Path(path).resolve().relative_to(self._root).as_posix()
        except ValueError:
            return Path(path).as_posix()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_KINDS:
            return
        paths = [str(event.src_path), str(getattr(event, "dest_path", "") or "")]
        touched = [p for p in paths if p and is_markdown(p)]
        if not touched:
            return
        change = DocumentChange(kind=event.event_type, identity=self._identity(touched[-1]))
        logger.debug("Document change: %s %s", change.kind, change.identity)
        self._callback(change)


class FileSystemDocumentSource:
    """Markdown documents under ``root``; identity is the path relative to it."""

    def __init__(self, root: str | Path, *, recursive: bool = True) -> None:
        self.root = Path(root).expanduser().resolve()
        self.recursive = recursive

    def _paths(self) -> List[Path]:
        if not self.root.is_dir():
            raise DocumentStoreError(f"Catalog path is not a directory: {self.root}")
        pattern = self.root.rglob("*") if self.recursive else self.root.glob("*")
        try:
            return sorted(p for p in pattern if p.is_file() and is_markdown(p))
        except OSError as exc:
            raise DocumentStoreError(f"Cannot enumerate {self.root}: {exc}") from exc

    def list_documents(self) -> List[Document]:
        docs: List[Document] = []
        for path in self._paths():
            identity = path.relative_to(self.root).as_posix()
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable document %s: %s", identity, exc)
                continue
            docs.append(Document(identity=identity, fields=parse_front_matter(text, identity=identity)))
        return docs

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        if not self.root.is_dir():
            raise DocumentStoreError(f"Catalog path is not a directory: {self.root}")
        observer = Observer()
        observer.schedule(_ChangeHandler(self.root, callback), str(self.root), recursive=self.recursive)
        observer.daemon = True
        observer.start()
        logger.info("Watching %s for document changes", self.root)

        stopped = threading.Event()

        def unsubscribe() -> None:
            if stopped.is_set():
                return
            stopped.set()
            observer.stop()
            observer.join(timeout=5)

        return unsubscribe


class InMemoryDocumentSource:
    """Dict-backed source that emits change events synchronously."""

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._lock = threading.Lock()
        self._docs: Dict[str, Document] = {d.identity: d for d in documents}
        self._subscribers: Dict[int, ChangeCallback] = {}
        self._next_token = 0
        self._failure: Optional[Exception] = None
        self.list_calls = 0

    def list_documents(self) -> List[Document]:
        with self._lock:
            self.list_calls += 1
            if self._failure is not None:
                raise DocumentStoreError(str(self._failure)) from self._failure
            return [self._docs[k] for k in sorted(self._docs)]

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def fail_with(self, error: Optional[Exception]) -> None:
        with self._lock:
            self._failure = error

    def put(self, identity: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            kind = "modified" if identity in self._docs else "created"
            self._docs[identity] = Document(identity=identity, fields=dict(fields))
        self._emit(DocumentChange(kind=kind, identity=identity))

    def delete(self, identity: str) -> None:
        with self._lock:
            if self._docs.pop(identity, None) is None:
                return
        self._emit(DocumentChange(kind="deleted", identity=identity))

    def _emit(self, change: DocumentChange) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        for cb in callbacks:
            cb(change)

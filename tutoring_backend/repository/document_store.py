"""Repository layer responsible for all document persistence.

Every collection is a list of JSON objects keyed by their ``id`` field. The
file-backed store keeps one ``<collection>.json`` array per collection under
the configured data directory; the in-memory store offers the same contract
for tests and smoke checks.
"""

from __future__ import annotations

import copy
import json
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Iterable, Optional, Protocol

from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

Document = dict[str, Any]
Predicate = Callable[[Document], bool]

_COLLECTION_NAME = re.compile(r"^[a-z0-9][a-z0-9-]*\.json$")


class Collections:
    USERS = "users.json"
    SESSIONS = "sessions.json"
    CLASSES = "classes.json"
    ENROLLMENTS = "enrollments.json"
    OPTIMIZATION_PLANS = "optimization-plans.json"
    APPROVALS = "approvals.json"
    NOTIFICATIONS = "notifications.json"

    ALL = (
        USERS,
        SESSIONS,
        CLASSES,
        ENROLLMENTS,
        OPTIMIZATION_PLANS,
        APPROVALS,
        NOTIFICATIONS,
    )


class StoreError(RuntimeError):
    """Raised when a collection cannot be read or written."""


@dataclass(frozen=True)
class Page:
    items: list[Document]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


class DocumentStore(Protocol):
    def read(self, collection: str) -> list[Document]: ...

    def write(self, collection: str, documents: Iterable[Document]) -> None: ...

    def find(self, collection: str, predicate: Predicate) -> list[Document]: ...

    def find_by_id(self, collection: str, document_id: str) -> Optional[Document]: ...

    def find_by_ids(self, collection: str, ids: Iterable[str]) -> dict[str, Document]: ...

    def create(self, collection: str, document: Document) -> Document: ...

    def update(
        self,
        collection: str,
        document_id: str,
        changes: Document,
    ) -> Optional[Document]: ...

    def delete(self, collection: str, document_id: str) -> bool: ...

    def paginate(
        self,
        collection: str,
        *,
        page: int = 1,
        limit: int = 20,
        predicate: Optional[Predicate] = None,
        sort_key: Optional[Callable[[Document], Any]] = None,
        reverse: bool = False,
    ) -> Page: ...


def _validate_collection(collection: str) -> None:
    if not _COLLECTION_NAME.match(collection):
        raise ValueError(f"Invalid collection name: {collection!r}")


class _CollectionStore:
    """Shared CRUD semantics over a collection load/save primitive."""

    def __init__(self) -> None:
        self._lock = RLock()

    def _load(self, collection: str) -> list[Document]:
        raise NotImplementedError

    def _save(self, collection: str, documents: list[Document]) -> None:
        raise NotImplementedError

    def read(self, collection: str) -> list[Document]:
        _validate_collection(collection)
        with self._lock:
            return copy.deepcopy(self._load(collection))

    def write(self, collection: str, documents: Iterable[Document]) -> None:
        """Replace a whole collection; used for seeding and migrations."""
        _validate_collection(collection)
        rows = [copy.deepcopy(dict(document)) for document in documents]
        for row in rows:
            if not row.get("id"):
                raise StoreError(f"Document without id cannot be written to {collection}")
        with self._lock:
            self._save(collection, rows)

    def find(self, collection: str, predicate: Predicate) -> list[Document]:
        return [document for document in self.read(collection) if predicate(document)]

    def find_by_id(self, collection: str, document_id: str) -> Optional[Document]:
        for document in self.read(collection):
            if document.get("id") == document_id:
                return document
        return None

    def find_by_ids(self, collection: str, ids: Iterable[str]) -> dict[str, Document]:
        wanted = set(ids)
        if not wanted:
            return {}
        return {
            str(document["id"]): document
            for document in self.read(collection)
            if document.get("id") in wanted
        }

    def create(self, collection: str, document: Document) -> Document:
        _validate_collection(collection)
        document_id = document.get("id")
        if not document_id:
            raise StoreError(f"Document without id cannot be created in {collection}")
        with self._lock:
            rows = self._load(collection)
            if any(row.get("id") == document_id for row in rows):
                raise StoreError(f"Duplicate id {document_id} in {collection}")
            rows.append(copy.deepcopy(dict(document)))
            self._save(collection, rows)
        return copy.deepcopy(dict(document))

    def update(
        self,
        collection: str,
        document_id: str,
        changes: Document,
    ) -> Optional[Document]:
        """Shallow-merge ``changes`` into a document; ``None`` when it is absent."""
        _validate_collection(collection)
        with self._lock:
            rows = self._load(collection)
            for index, row in enumerate(rows):
                if row.get("id") != document_id:
                    continue
                merged = {**row, **copy.deepcopy(dict(changes)), "id": document_id}
                rows[index] = merged
                self._save(collection, rows)
                return copy.deepcopy(merged)
        return None

    def delete(self, collection: str, document_id: str) -> bool:
        _validate_collection(collection)
        with self._lock:
            rows = self._load(collection)
            remaining = [row for row in rows if row.get("id") != document_id]
            if len(remaining) == len(rows):
                return False
            self._save(collection, remaining)
            return True

    def paginate(
        self,
        collection: str,
        *,
        page: int = 1,
        limit: int = 20,
        predicate: Optional[Predicate] = None,
        sort_key: Optional[Callable[[Document], Any]] = None,
        reverse: bool = False,
    ) -> Page:
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        rows = self.read(collection)
        if predicate is not None:
            rows = [row for row in rows if predicate(row)]
        if sort_key is not None:
            rows.sort(key=sort_key, reverse=reverse)
        start = (page - 1) * limit
        return Page(items=rows[start:start + limit], total=len(rows), page=page, limit=limit)

    def count(self, collection: str) -> int:
        _validate_collection(collection)
        with self._lock:
            return len(self._load(collection))


class JsonFileDocumentStore(_CollectionStore):
    """Flat-file store: one JSON array per collection under ``data_dir``."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self._settings = settings or get_settings()
        self._data_dir = Path(self._settings.data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, collection: str) -> Path:
        return self._data_dir / collection

    def initialize_collections(self) -> None:
        """Create empty collection files so the data directory is self-describing."""
        with self._lock:
            for collection in Collections.ALL:
                if not self._path(collection).exists():
                    self._save(collection, [])
        logger.info("Document store initialized at %s", self._data_dir)

    def _load(self, collection: str) -> list[Document]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Failed to read {collection}: {exc}") from exc
        if not isinstance(payload, list):
            raise StoreError(f"{collection} must contain a JSON array")
        return payload

    def _save(self, collection: str, documents: list[Document]) -> None:
        path = self._path(collection)
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{collection}.",
                suffix=".tmp",
                dir=self._data_dir,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(documents, handle, ensure_ascii=False, indent=2)
                os.replace(temp_name, path)
            except BaseException:
                if os.path.exists(temp_name):
                    os.unlink(temp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"Failed to write {collection}: {exc}") from exc


class InMemoryDocumentStore(_CollectionStore):
    """Process-local store with the same contract as the file store."""

    def __init__(self, seed: Optional[dict[str, Iterable[Document]]] = None) -> None:
        super().__init__()
        self._collections: dict[str, list[Document]] = {}
        for collection, documents in (seed or {}).items():
            self.write(collection, documents)

    def _load(self, collection: str) -> list[Document]:
        return list(self._collections.get(collection, []))

    def _save(self, collection: str, documents: list[Document]) -> None:
        self._collections[collection] = list(documents)

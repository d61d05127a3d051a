from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Protocol
import logging
import threading
import time

from firemock.firestore.errors import AlreadyExists, InvalidPath, NotFound
from firemock.firestore.ids import AutoIdGenerator, IdGenerator
from firemock.firestore.paths import (
    SEPARATOR,
    CollectionName,
    DatabaseId,
    child_collections_of,
    parse_collection_name,
    parse_document_name,
    parse_parent,
    validate_segment,
)
from firemock.firestore.values import Timestamp, WireValue, decode_fields, encode_fields, fields_to_json

LOGGER = logging.getLogger(__name__)

MAX_AUTO_ID_ATTEMPTS = 16


@dataclass(frozen=True)
class Document:
    name: str
    fields: Mapping[str, WireValue]
    create_time: Timestamp
    update_time: Timestamp

    @property
    def id(self) -> str:
        return self.name.rpartition(SEPARATOR)[2]

    @property
    def parent(self) -> str:
        return self.name.rpartition(SEPARATOR)[0]

    def to_dict(self) -> dict[str, Any]:
        return decode_fields(self.fields)

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fields": fields_to_json(self.fields),
            "createTime": self.create_time.isoformat(),
            "updateTime": self.update_time.isoformat(),
        }


class Clock(Protocol):
    def now(self) -> Timestamp:
        """Return the current instant."""


class MonotonicClock:
    """Wall clock that never goes backwards, even if the system clock does."""

    def __init__(self, time_source: Callable[[], int] = time.time_ns) -> None:
        self._time_source = time_source
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> Timestamp:
        with self._lock:
            self._last = max(self._time_source(), self._last)
            return Timestamp.from_epoch_nanos(self._last)


class DocumentStore:
    """In-memory document table for one project/database pair.

    Documents are immutable values; writes replace the entry under a single
    lock, so every name sees one total order of create/merge/delete and
    readers never observe a half-applied write.
    """

    def __init__(
        self,
        database: DatabaseId,
        *,
        id_generator: IdGenerator | None = None,
        clock: Clock | None = None,
        max_auto_id_attempts: int = MAX_AUTO_ID_ATTEMPTS,
    ) -> None:
        if max_auto_id_attempts <= 0:
            raise ValueError("max_auto_id_attempts must be > 0.")
        self._database = database
        self._id_generator = id_generator or AutoIdGenerator()
        self._clock = clock or MonotonicClock()
        self._max_auto_id_attempts = max_auto_id_attempts
        self._documents: dict[str, Document] = {}
        self._lock = threading.RLock()

    @property
    def database(self) -> DatabaseId:
        return self._database

    def now(self) -> Timestamp:
        return self._clock.now()

    def _check_database(self, database: DatabaseId, name: str) -> None:
        if database != self._database:
            raise InvalidPath(
                f"{name} does not belong to projects/{self._database.project}/databases/{self._database.database}."
            )

    def _document_name(self, name: str) -> str:
        parsed = parse_document_name(name)
        self._check_database(parsed.database_id, name)
        return parsed.name

    def _collection_name(self, name: str) -> str:
        parsed = parse_collection_name(name)
        self._check_database(parsed.database_id, name)
        return parsed.name

    def create(
        self,
        collection: str,
        fields: Mapping[str, Any],
        *,
        document_id: str | None = None,
    ) -> Document:
        parsed = parse_collection_name(collection)
        self._check_database(parsed.database_id, collection)
        encoded = MappingProxyType(encode_fields(fields))

        with self._lock:
            if document_id is not None:
                name = parsed.document(document_id).name
                if name in self._documents:
                    raise AlreadyExists(f"Document already exists: {name}")
            else:
                name = self._unused_auto_name(parsed)
            return self._insert(name, encoded)

    def _insert(self, name: str, fields: Mapping[str, WireValue]) -> Document:
        now = self._clock.now()
        document = Document(name=name, fields=fields, create_time=now, update_time=now)
        self._documents[name] = document
        LOGGER.debug("document created: %s", name)
        return document

    def _unused_auto_name(self, parsed: CollectionName) -> str:
        for _ in range(self._max_auto_id_attempts):
            name = parsed.document(self._id_generator.next()).name
            if name not in self._documents:
                return name
            LOGGER.warning("auto id collision in %s, regenerating", parsed.name)
        raise AlreadyExists(f"Could not allocate an unused document id in {parsed.name}.")

    def get(self, name: str) -> Document | None:
        return self._documents.get(self._document_name(name))

    def get_many(self, names: Iterable[str]) -> list[tuple[str, Document | None]]:
        resolved = [self._document_name(name) for name in names]
        with self._lock:
            return [(name, self._documents.get(name)) for name in resolved]

    def list_documents(self, collection: str) -> list[Document]:
        collection_name = self._collection_name(collection)
        with self._lock:
            snapshot = list(self._documents.values())
        return [document for document in snapshot if document.parent == collection_name]

    def list_collection_ids(self, parent: str) -> list[str]:
        parsed = parse_parent(parent)
        if isinstance(parsed, DatabaseId):
            self._check_database(parsed, parent)
            parent_name = parsed.root
        else:
            self._check_database(parsed.database_id, parent)
            parent_name = parsed.name
        with self._lock:
            names = list(self._documents)
        return sorted(child_collections_of(names, parent_name))

    def merge(self, name: str, fields: Mapping[str, Any], *, create_if_missing: bool = False) -> Document:
        """Overwrite or add only the given fields; every other field is kept.

        Explicit nulls are stored as null values, not treated as deletions.
        """

        document_name = self._document_name(name)
        encoded = encode_fields(fields)

        with self._lock:
            existing = self._documents.get(document_name)
            if existing is None:
                if not create_if_missing:
                    raise NotFound(f"Document not found: {document_name}")
                return self._insert(document_name, MappingProxyType(encoded))
            merged = dict(existing.fields)
            merged.update(encoded)
            updated = Document(
                name=document_name,
                fields=MappingProxyType(merged),
                create_time=existing.create_time,
                update_time=max(self._clock.now(), existing.update_time),
            )
            self._documents[document_name] = updated

        LOGGER.debug("document merged: %s fields=%s", document_name, sorted(encoded))
        return updated

    def set(self, name: str, fields: Mapping[str, Any], *, must_exist: bool = False) -> Document:
        """Replace the whole field set, creating the document if needed.

        ``create_time`` survives a replace of an existing document.
        """

        document_name = self._document_name(name)
        encoded = MappingProxyType(encode_fields(fields))

        with self._lock:
            existing = self._documents.get(document_name)
            if existing is None:
                if must_exist:
                    raise NotFound(f"Document not found: {document_name}")
                return self._insert(document_name, encoded)
            document = Document(
                name=document_name,
                fields=encoded,
                create_time=existing.create_time,
                update_time=max(self._clock.now(), existing.update_time),
            )
            self._documents[document_name] = document

        LOGGER.debug("document replaced: %s", document_name)
        return document

    def delete(self, name: str) -> bool:
        document_name = self._document_name(name)
        with self._lock:
            removed = self._documents.pop(document_name, None)
        if removed is not None:
            LOGGER.debug("document deleted: %s", document_name)
        return removed is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._documents)
            self._documents.clear()
        LOGGER.info("store cleared: %s documents removed", count)
        return count

    def count(self) -> int:
        return len(self._documents)


class DocumentStoreRegistry:
    """One ``DocumentStore`` per project/database pair, created on first use."""

    def __init__(
        self,
        *,
        stores: Iterable[DocumentStore] = (),
        store_factory: Callable[[DatabaseId], DocumentStore] = DocumentStore,
    ) -> None:
        self._store_factory = store_factory
        self._stores: dict[DatabaseId, DocumentStore] = {store.database: store for store in stores}
        self._lock = threading.Lock()

    def get(self, database: DatabaseId) -> DocumentStore:
        with self._lock:
            store = self._stores.get(database)
            if store is None:
                validate_segment(database.project)
                validate_segment(database.database)
                store = self._store_factory(database)
                self._stores[database] = store
                LOGGER.info("document store created: %s", database.root)
            return store

    def databases(self) -> list[DatabaseId]:
        with self._lock:
            return list(self._stores)

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence
import re

from firemock.firestore.errors import InvalidPath


DEFAULT_DATABASE_ID = "(default)"
SEPARATOR = "/"
MAX_SEGMENT_BYTES = 1500

RESERVED_SEGMENT_PATTERN = re.compile(r"^__.*__$")


@dataclass(frozen=True)
class DatabaseId:
    project: str
    database: str = DEFAULT_DATABASE_ID

    @property
    def root(self) -> str:
        return database_root(self.project, self.database)


@dataclass(frozen=True)
class DocumentName:
    project: str
    database: str
    collection_path: tuple[str, ...]
    document_id: str

    @property
    def database_id(self) -> DatabaseId:
        return DatabaseId(self.project, self.database)

    @property
    def name(self) -> str:
        return build_document_name(self.project, self.database, self.collection_path, self.document_id)

    @property
    def parent(self) -> CollectionName:
        return CollectionName(self.project, self.database, self.collection_path)


@dataclass(frozen=True)
class CollectionName:
    project: str
    database: str
    segments: tuple[str, ...]

    @property
    def database_id(self) -> DatabaseId:
        return DatabaseId(self.project, self.database)

    @property
    def name(self) -> str:
        return f"{database_root(self.project, self.database)}/{SEPARATOR.join(self.segments)}"

    def document(self, document_id: str) -> DocumentName:
        validate_segment(document_id)
        return DocumentName(self.project, self.database, self.segments, document_id)


def validate_segment(segment: str) -> str:
    if not isinstance(segment, str) or not segment:
        raise InvalidPath("Path segments must be non-empty strings.")
    if SEPARATOR in segment:
        raise InvalidPath(f"Path segment must not contain '{SEPARATOR}': {segment}")
    if segment in (".", ".."):
        raise InvalidPath(f"Path segment must not be '.' or '..': {segment}")
    if RESERVED_SEGMENT_PATTERN.match(segment):
        raise InvalidPath(f"Path segment matches the reserved pattern __.*__: {segment}")
    if len(segment.encode("utf-8")) > MAX_SEGMENT_BYTES:
        raise InvalidPath(f"Path segment exceeds {MAX_SEGMENT_BYTES} bytes.")
    return segment


def database_root(project: str, database: str = DEFAULT_DATABASE_ID) -> str:
    validate_segment(project)
    validate_segment(database)
    return f"projects/{project}/databases/{database}/documents"


def build_document_name(
    project: str,
    database: str,
    collection_path: Sequence[str],
    document_id: str,
) -> str:
    """Build ``projects/{p}/databases/{d}/documents/{collection}/{id}[/{collection}/{id}...]``."""

    segments = list(collection_path)
    if len(segments) % 2 != 1:
        raise InvalidPath(f"Collection path must have an odd number of segments: {'/'.join(segments)}")
    for segment in segments:
        validate_segment(segment)
    validate_segment(document_id)
    return f"{database_root(project, database)}/{SEPARATOR.join(segments)}/{document_id}"


def _split_resource_name(name: str) -> tuple[str, str, list[str]]:
    if not isinstance(name, str):
        raise InvalidPath(f"Resource name must be a string: {name!r}")
    parts = name.strip(SEPARATOR).split(SEPARATOR)
    if len(parts) < 5 or parts[0] != "projects" or parts[2] != "databases" or parts[4] != "documents":
        raise InvalidPath(f"Resource name must start with projects/{{project}}/databases/{{database}}/documents: {name}")
    project, database = parts[1], parts[3]
    validate_segment(project)
    validate_segment(database)
    rest = parts[5:]
    for segment in rest:
        validate_segment(segment)
    return project, database, rest


def parse_document_name(name: str) -> DocumentName:
    project, database, rest = _split_resource_name(name)
    if not rest or len(rest) % 2 != 0:
        raise InvalidPath(f"Document name must have an even number of segments after documents: {name}")
    return DocumentName(project, database, tuple(rest[:-1]), rest[-1])


def parse_collection_name(name: str) -> CollectionName:
    project, database, rest = _split_resource_name(name)
    if len(rest) % 2 != 1:
        raise InvalidPath(f"Collection name must have an odd number of segments after documents: {name}")
    return CollectionName(project, database, tuple(rest))


def parse_parent(name: str) -> DocumentName | DatabaseId:
    """Parse a parent resource: the database root or a document name."""

    project, database, rest = _split_resource_name(name)
    if not rest:
        return DatabaseId(project, database)
    return parse_document_name(name)


def parent_of(document_name: str) -> str:
    return parse_document_name(document_name).parent.name


def child_collections_of(document_names: Iterable[str], parent: str) -> set[str]:
    """Collect the distinct collection ids directly under ``parent``.

    ``parent`` is either the database root (``.../documents``) or a document
    name. Collections exist only through the documents stored beneath them.
    """

    prefix = parent.strip(SEPARATOR) + SEPARATOR
    collection_ids: set[str] = set()
    for document_name in document_names:
        if not document_name.startswith(prefix):
            continue
        next_segment, _, remainder = document_name[len(prefix) :].partition(SEPARATOR)
        if next_segment and remainder:
            collection_ids.add(next_segment)
    return collection_ids

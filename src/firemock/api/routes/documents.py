from __future__ import annotations

from typing import Any, Sequence, TypeVar

from fastapi import APIRouter, Depends, Query

from firemock.api.dependencies import get_document_store
from firemock.api.errors import InvalidArgumentError, NotFoundError, to_api_error
from firemock.api.openapi import error_responses
from firemock.api.schemas import (
    BatchGetRequest,
    BatchGetResult,
    DocumentBody,
    DocumentResponse,
    EmptyResponse,
    ListCollectionIdsRequest,
    ListCollectionIdsResponse,
    ListDocumentsResponse,
)
from firemock.firestore.errors import FirestoreError
from firemock.firestore.paths import database_root, parse_document_name
from firemock.firestore.store import DocumentStore
from firemock.firestore.values import decode_fields, fields_from_json

DATABASE_PATH = "/v1/projects/{project}/databases/{database}/documents"

ItemT = TypeVar("ItemT")

router = APIRouter(tags=["documents"])


def _resource_name(project: str, database: str, path: str = "") -> str:
    try:
        root = database_root(project, database)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    path = path.strip("/")
    return f"{root}/{path}" if path else root


def _native_fields(payload: DocumentBody | None, *, update_mask: Sequence[str] | None = None) -> dict[str, Any]:
    try:
        fields = decode_fields(fields_from_json(payload.fields if payload is not None else {}))
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    if update_mask is None:
        return fields
    masked = set()
    for field_path in update_mask:
        if "." in field_path or "`" in field_path:
            raise InvalidArgumentError(f"Nested field paths are not supported in updateMask: {field_path}")
        masked.add(field_path)
    return {name: value for name, value in fields.items() if name in masked}


def _page(items: list[ItemT], page_size: int, page_token: str) -> tuple[list[ItemT], str | None]:
    if page_size <= 0:
        return items, None
    try:
        start = int(page_token) if page_token else 0
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid page token: {page_token}") from exc
    if start < 0:
        raise InvalidArgumentError(f"Invalid page token: {page_token}")
    end = start + page_size
    return items[start:end], (str(end) if end < len(items) else None)


def _collection_ids(store: DocumentStore, parent: str, request: ListCollectionIdsRequest) -> ListCollectionIdsResponse:
    try:
        collection_ids = store.list_collection_ids(parent)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    page, next_page_token = _page(collection_ids, request.page_size, request.page_token)
    if next_page_token is None:
        return ListCollectionIdsResponse(collection_ids=page)
    return ListCollectionIdsResponse(collection_ids=page, next_page_token=next_page_token)


@router.post(
    DATABASE_PATH + ":batchGet",
    response_model=list[BatchGetResult],
    response_model_exclude_unset=True,
    responses=error_responses(400, 500),
)
def batch_get_documents(
    project: str,
    database: str,
    payload: BatchGetRequest,
    store: DocumentStore = Depends(get_document_store),
) -> list[BatchGetResult]:
    try:
        results = store.get_many(payload.documents)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    read_time = store.now()
    return [BatchGetResult.from_domain(name, document, read_time) for name, document in results]


@router.post(
    DATABASE_PATH + ":listCollectionIds",
    response_model=ListCollectionIdsResponse,
    response_model_exclude_unset=True,
    responses=error_responses(400, 500),
)
def list_root_collection_ids(
    project: str,
    database: str,
    payload: ListCollectionIdsRequest | None = None,
    store: DocumentStore = Depends(get_document_store),
) -> ListCollectionIdsResponse:
    return _collection_ids(store, _resource_name(project, database), payload or ListCollectionIdsRequest())


@router.post(
    DATABASE_PATH + "/{parent:path}:listCollectionIds",
    response_model=ListCollectionIdsResponse,
    response_model_exclude_unset=True,
    responses=error_responses(400, 500),
)
def list_collection_ids(
    project: str,
    database: str,
    parent: str,
    payload: ListCollectionIdsRequest | None = None,
    store: DocumentStore = Depends(get_document_store),
) -> ListCollectionIdsResponse:
    return _collection_ids(store, _resource_name(project, database, parent), payload or ListCollectionIdsRequest())


@router.get(
    DATABASE_PATH + "/{path:path}",
    response_model=DocumentResponse | ListDocumentsResponse,
    response_model_exclude_unset=True,
    responses=error_responses(400, 404, 500),
)
def get_or_list_documents(
    project: str,
    database: str,
    path: str,
    mask: list[str] | None = Query(default=None, alias="mask.fieldPaths"),
    page_size: int = Query(default=0, ge=0, alias="pageSize"),
    page_token: str = Query(default="", alias="pageToken"),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentResponse | ListDocumentsResponse:
    """Even segment counts address a document, odd ones a collection."""

    name = _resource_name(project, database, path)
    if len(path.strip("/").split("/")) % 2 == 0:
        try:
            document = store.get(name)
        except FirestoreError as exc:
            raise to_api_error(exc) from exc
        if document is None:
            raise NotFoundError(f"Document not found: {name}")
        response = DocumentResponse.from_domain(document)
        if mask is not None:
            selected = set(mask)
            response.fields = {key: value for key, value in response.fields.items() if key in selected}
        return response

    try:
        documents = store.list_documents(name)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    page, next_page_token = _page(documents, page_size, page_token)
    if not page:
        return ListDocumentsResponse()
    items = [DocumentResponse.from_domain(document) for document in page]
    if next_page_token is None:
        return ListDocumentsResponse(documents=items)
    return ListDocumentsResponse(documents=items, next_page_token=next_page_token)


@router.post(
    DATABASE_PATH + "/{path:path}",
    response_model=DocumentResponse,
    responses=error_responses(400, 409, 500),
)
def create_document(
    project: str,
    database: str,
    path: str,
    payload: DocumentBody | None = None,
    document_id: str | None = Query(default=None, alias="documentId"),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentResponse:
    """``path`` is ``{parent document path}/{collectionId}`` or just ``{collectionId}``."""

    collection = _resource_name(project, database, path)
    fields = _native_fields(payload)
    try:
        created = store.create(collection, fields, document_id=document_id or None)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    return DocumentResponse.from_domain(created)


@router.patch(
    DATABASE_PATH + "/{path:path}",
    response_model=DocumentResponse,
    responses=error_responses(400, 404, 409, 500),
)
def update_document(
    project: str,
    database: str,
    path: str,
    payload: DocumentBody | None = None,
    update_mask: list[str] | None = Query(default=None, alias="updateMask.fieldPaths"),
    current_document_exists: bool | None = Query(default=None, alias="currentDocument.exists"),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentResponse:
    """With an update mask only the masked fields are merged; without one the document is replaced."""

    name = _resource_name(project, database, path)
    fields = _native_fields(payload, update_mask=update_mask)
    try:
        if current_document_exists is False:
            parsed = parse_document_name(name)
            document = store.create(parsed.parent.name, fields, document_id=parsed.document_id)
        elif update_mask is not None:
            document = store.merge(name, fields, create_if_missing=not current_document_exists)
        else:
            document = store.set(name, fields, must_exist=bool(current_document_exists))
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    return DocumentResponse.from_domain(document)


@router.delete(
    DATABASE_PATH + "/{path:path}",
    response_model=EmptyResponse,
    responses=error_responses(400, 404, 500),
)
def delete_document(
    project: str,
    database: str,
    path: str,
    current_document_exists: bool | None = Query(default=None, alias="currentDocument.exists"),
    store: DocumentStore = Depends(get_document_store),
) -> EmptyResponse:
    name = _resource_name(project, database, path)
    try:
        deleted = store.delete(name)
    except FirestoreError as exc:
        raise to_api_error(exc) from exc
    if not deleted and current_document_exists:
        raise NotFoundError(f"Document not found: {name}")
    return EmptyResponse()

from __future__ import annotations

from typing import Callable, TypeVar

from fastapi import Depends, Request

from firemock.api.errors import to_api_error
from firemock.auth.users import UserDirectory
from firemock.firestore.errors import FirestoreError
from firemock.firestore.paths import DatabaseId
from firemock.firestore.store import DocumentStore, DocumentStoreRegistry
from firemock.settings import AppSettings, load_settings


DependencyT = TypeVar("DependencyT")


def create_document_stores(
    settings: AppSettings | None = None,
    document_store: DocumentStore | None = None,
) -> DocumentStoreRegistry:
    settings = settings or load_settings()
    return DocumentStoreRegistry(stores=[document_store or DocumentStore(settings.database)])


def create_user_directory() -> UserDirectory:
    return UserDirectory()


def _resolve_dependency(
    request: Request,
    *,
    value_key: str,
    factory_key: str,
    missing_message: str,
) -> DependencyT:
    dependency = getattr(request.app.state, value_key, None)
    if dependency is not None:
        return dependency

    factory: Callable[[], DependencyT] | None = getattr(request.app.state, factory_key, None)
    if factory is None:
        raise RuntimeError(missing_message)
    dependency = factory()
    setattr(request.app.state, value_key, dependency)
    return dependency


def get_document_stores(request: Request) -> DocumentStoreRegistry:
    return _resolve_dependency(
        request,
        value_key="document_stores",
        factory_key="document_stores_factory",
        missing_message="document_stores is not initialized.",
    )


def get_document_store(
    project: str,
    database: str,
    stores: DocumentStoreRegistry = Depends(get_document_stores),
) -> DocumentStore:
    try:
        return stores.get(DatabaseId(project, database))
    except FirestoreError as exc:
        raise to_api_error(exc) from exc


def get_user_directory(request: Request) -> UserDirectory:
    return _resolve_dependency(
        request,
        value_key="user_directory",
        factory_key="user_directory_factory",
        missing_message="user_directory is not initialized.",
    )

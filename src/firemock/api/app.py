from __future__ import annotations

from functools import partial

from fastapi import FastAPI

from firemock.api.dependencies import create_document_stores, create_user_directory
from firemock.api.errors import install_exception_handlers
from firemock.api.middleware import install_request_logging_middleware
from firemock.api.routes import api_router, auth_router
from firemock.auth.users import UserDirectory
from firemock.firestore.store import DocumentStore
from firemock.settings import AppSettings, load_settings


def create_app(
    *,
    settings: AppSettings | None = None,
    document_store: DocumentStore | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(
        title="firemock Firestore emulator",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    install_exception_handlers(app)

    app.state.document_stores = create_document_stores(settings, document_store)
    app.state.document_stores_factory = partial(create_document_stores, settings)

    if settings.verbose_request_logs:
        install_request_logging_middleware(app, label="firestore")
    app.include_router(api_router)
    return app


def create_auth_app(
    *,
    settings: AppSettings | None = None,
    user_directory: UserDirectory | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(
        title="firemock Auth emulator",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    install_exception_handlers(app)

    app.state.user_directory = user_directory or create_user_directory()
    app.state.user_directory_factory = create_user_directory

    if settings.verbose_request_logs:
        install_request_logging_middleware(app, label="auth")
    app.include_router(auth_router)
    return app

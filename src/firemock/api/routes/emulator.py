from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from firemock.api.dependencies import get_document_store, get_user_directory
from firemock.api.openapi import error_responses
from firemock.api.schemas import EmptyResponse
from firemock.auth.users import UserDirectory
from firemock.firestore.store import DocumentStore

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["emulator"])
accounts_router = APIRouter(tags=["emulator"])


@router.delete(
    "/emulator/v1/projects/{project}/databases/{database}/documents",
    response_model=EmptyResponse,
    responses=error_responses(400, 500),
)
def clear_documents(
    project: str,
    database: str,
    store: DocumentStore = Depends(get_document_store),
) -> EmptyResponse:
    """Drop every document of one project/database."""

    removed = store.clear()
    LOGGER.info("emulator reset for %s/%s (%s documents)", project, database, removed)
    return EmptyResponse()


@accounts_router.delete(
    "/emulator/v1/projects/{project}/accounts",
    response_model=EmptyResponse,
    responses=error_responses(500),
)
def clear_accounts(
    project: str,
    directory: UserDirectory = Depends(get_user_directory),
) -> EmptyResponse:
    removed = directory.clear()
    LOGGER.info("emulator reset for %s accounts (%s users)", project, removed)
    return EmptyResponse()

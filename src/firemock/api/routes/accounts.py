from __future__ import annotations

from typing import Any
import hashlib
import logging

from fastapi import APIRouter, Depends

from firemock.api.dependencies import get_user_directory
from firemock.api.errors import user_api_error
from firemock.api.openapi import error_responses
from firemock.api.schemas import (
    DeleteAccountRequest,
    DeleteAccountResponse,
    LookupRequest,
    LookupResponse,
    SignUpRequest,
    SignUpResponse,
    UpdateAccountRequest,
    UpdateAccountResponse,
)
from firemock.auth.users import (
    InvalidEmailError,
    UserDirectory,
    UserDirectoryError,
    UserNotFoundError,
    UserRecord,
    generate_local_id,
)

LOGGER = logging.getLogger(__name__)

ACCOUNTS_PATH = "/identitytoolkit.googleapis.com/v1/projects/{project}/accounts"

router = APIRouter(tags=["auth"])


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


@router.post(
    ACCOUNTS_PATH,
    response_model=SignUpResponse,
    response_model_exclude_none=True,
    responses=error_responses(400, 500),
)
def create_account(
    project: str,
    payload: SignUpRequest,
    directory: UserDirectory = Depends(get_user_directory),
) -> SignUpResponse:
    try:
        if not payload.email:
            raise InvalidEmailError("email is required")
        user = directory.add(
            UserRecord(
                local_id=payload.local_id or generate_local_id(),
                email=payload.email,
                email_verified=payload.email_verified,
                display_name=payload.display_name or None,
                photo_url=payload.photo_url or None,
                phone_number=payload.phone_number or None,
                password_hash=hash_password(payload.password) if payload.password else None,
                disabled=payload.disabled,
            )
        )
    except UserDirectoryError as exc:
        LOGGER.info("signUp rejected in %s: %s", project, exc)
        raise user_api_error(exc) from exc
    return SignUpResponse(local_id=user.local_id, email=user.email)


@router.post(
    ACCOUNTS_PATH + ":lookup",
    response_model=LookupResponse,
    response_model_exclude_none=True,
    responses=error_responses(400, 500),
)
def lookup_accounts(
    project: str,
    payload: LookupRequest,
    directory: UserDirectory = Depends(get_user_directory),
) -> LookupResponse:
    """Users matching any of the given local ids or emails, each at most once."""

    found: dict[str, UserRecord] = {}
    candidates = [directory.get_by_uid(local_id) for local_id in payload.local_id]
    candidates.extend(directory.get_by_email(email) for email in payload.email)
    for user in candidates:
        if user is not None:
            found.setdefault(user.local_id, user)
    LOGGER.debug("lookup in %s matched %s users", project, len(found))
    return LookupResponse.from_domain(list(found.values()))


@router.post(
    ACCOUNTS_PATH + ":update",
    response_model=UpdateAccountResponse,
    responses=error_responses(400, 500),
)
def update_account(
    project: str,
    payload: UpdateAccountRequest,
    directory: UserDirectory = Depends(get_user_directory),
) -> UpdateAccountResponse:
    changes: dict[str, Any] = {}
    if payload.email is not None:
        changes["email"] = payload.email
    if payload.password is not None:
        changes["password_hash"] = hash_password(payload.password)
    if payload.display_name is not None:
        changes["display_name"] = payload.display_name
    if payload.photo_url is not None:
        changes["photo_url"] = payload.photo_url
    if payload.phone_number is not None:
        changes["phone_number"] = payload.phone_number
    if payload.email_verified is not None:
        changes["email_verified"] = payload.email_verified
    if payload.disable_user is not None:
        changes["disabled"] = payload.disable_user

    try:
        if changes:
            user = directory.update(payload.local_id, changes)
        else:
            user = directory.get_by_uid(payload.local_id)
            if user is None:
                raise UserNotFoundError(f"user not found: {payload.local_id}")
    except UserDirectoryError as exc:
        LOGGER.info("update rejected in %s: %s", project, exc)
        raise user_api_error(exc) from exc
    return UpdateAccountResponse(local_id=user.local_id)


@router.post(
    ACCOUNTS_PATH + ":delete",
    response_model=DeleteAccountResponse,
    responses=error_responses(400, 500),
)
def delete_account(
    project: str,
    payload: DeleteAccountRequest,
    directory: UserDirectory = Depends(get_user_directory),
) -> DeleteAccountResponse:
    if not directory.delete(payload.local_id):
        raise user_api_error(UserNotFoundError(f"user not found: {payload.local_id}"))
    return DeleteAccountResponse()

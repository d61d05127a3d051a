from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from firemock.auth.users import UserRecord
from firemock.firestore.store import Document
from firemock.firestore.values import Timestamp


class HealthzResponse(BaseModel):
    status: str = Field(default="ok")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DocumentBody(_CamelModel):
    """Inbound document; ``fields`` holds REST wire values such as ``{"stringValue": "x"}``."""

    name: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class DocumentResponse(_CamelModel):
    name: str
    fields: dict[str, Any]
    create_time: str = Field(alias="createTime")
    update_time: str = Field(alias="updateTime")

    @classmethod
    def from_domain(cls, document: Document) -> "DocumentResponse":
        return cls.model_validate(document.to_json())


class ListDocumentsResponse(_CamelModel):
    documents: list[DocumentResponse] | None = None
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class BatchGetRequest(_CamelModel):
    documents: list[str] = Field(default_factory=list)


class BatchGetResult(_CamelModel):
    found: DocumentResponse | None = None
    missing: str | None = None
    read_time: str = Field(alias="readTime")

    @classmethod
    def from_domain(cls, name: str, document: Document | None, read_time: Timestamp) -> "BatchGetResult":
        if document is None:
            return cls(missing=name, read_time=read_time.isoformat())
        return cls(found=DocumentResponse.from_domain(document), read_time=read_time.isoformat())


class ListCollectionIdsRequest(_CamelModel):
    page_size: int = Field(default=0, ge=0, alias="pageSize")
    page_token: str = Field(default="", alias="pageToken")


class ListCollectionIdsResponse(_CamelModel):
    collection_ids: list[str] = Field(default_factory=list, alias="collectionIds")
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class EmptyResponse(BaseModel):
    pass


class SignUpRequest(_CamelModel):
    local_id: str | None = Field(default=None, alias="localId")
    email: str | None = None
    password: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    photo_url: str | None = Field(default=None, alias="photoUrl")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    email_verified: bool = Field(default=False, alias="emailVerified")
    disabled: bool = False


class SignUpResponse(_CamelModel):
    kind: str = "identitytoolkit#SignupNewUserResponse"
    local_id: str = Field(alias="localId")
    email: str | None = None


class LookupRequest(_CamelModel):
    local_id: list[str] = Field(default_factory=list, alias="localId")
    email: list[str] = Field(default_factory=list)


class LookupResponse(_CamelModel):
    kind: str = "identitytoolkit#GetAccountInfoResponse"
    users: list[dict[str, Any]] | None = None

    @classmethod
    def from_domain(cls, users: list[UserRecord]) -> "LookupResponse":
        return cls(users=[user.to_document() for user in users] or None)


class UpdateAccountRequest(_CamelModel):
    local_id: str = Field(alias="localId", min_length=1)
    email: str | None = None
    password: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    photo_url: str | None = Field(default=None, alias="photoUrl")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    email_verified: bool | None = Field(default=None, alias="emailVerified")
    disable_user: bool | None = Field(default=None, alias="disableUser")


class UpdateAccountResponse(_CamelModel):
    kind: str = "identitytoolkit#SetAccountInfoResponse"
    local_id: str = Field(alias="localId")


class DeleteAccountRequest(_CamelModel):
    local_id: str = Field(alias="localId", min_length=1)


class DeleteAccountResponse(_CamelModel):
    kind: str = "identitytoolkit#DeleteAccountResponse"

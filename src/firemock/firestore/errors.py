from __future__ import annotations


class FirestoreError(ValueError):
    """Base document store error."""


class InvalidPath(FirestoreError):
    """Raised when a resource name or path segment is malformed."""


class AlreadyExists(FirestoreError):
    """Raised when creating a document whose name is already taken."""


class NotFound(FirestoreError):
    """Raised when an operation targets a document that does not exist."""


class UnsupportedValueKind(FirestoreError):
    """Raised when a native value has no wire representation."""


class MalformedWireValue(FirestoreError):
    """Raised when a wire value envelope is not well formed."""

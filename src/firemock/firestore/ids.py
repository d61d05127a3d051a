from __future__ import annotations

from typing import Protocol
import secrets
import string


AUTO_ID_ALPHABET = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


class IdGenerator(Protocol):
    def next(self) -> str:
        """Return a candidate document id."""


class AutoIdGenerator:
    """Random 20-character ids, the same shape the client SDKs generate.

    62**20 possible ids; uniqueness is still checked by the store.
    """

    def __init__(self, *, length: int = AUTO_ID_LENGTH, alphabet: str = AUTO_ID_ALPHABET) -> None:
        if length <= 0:
            raise ValueError("length must be > 0.")
        if len(set(alphabet)) < 2 or "/" in alphabet:
            raise ValueError("alphabet must have at least two distinct characters and no '/'.")
        self._length = length
        self._alphabet = alphabet

    def next(self) -> str:
        return "".join(secrets.choice(self._alphabet) for _ in range(self._length))

from __future__ import annotations

from typing import Any

from firemock.api.errors import ErrorResponse

ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid resource name, value or request body"},
    404: {"model": ErrorResponse, "description": "Document or user not found"},
    409: {"model": ErrorResponse, "description": "Document already exists"},
    500: {"model": ErrorResponse, "description": "Unexpected error"},
}


def error_responses(*codes: int) -> dict[int, dict[str, Any]]:
    responses: dict[int, dict[str, Any]] = {}
    for code in codes:
        if code in ERROR_RESPONSES:
            responses[code] = ERROR_RESPONSES[code]
    return responses

"""Classifier - Maps raw API responses to success values or typed errors.

Order of checks:
    2xx      -> returned untouched
    429      -> returned untouched (the submitter decides whether to resubmit)
    known JSON ``code`` -> matching SemanticApiError, whatever the status
    403      -> MissingPermissionsError
    anything else -> ApiError
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

from chatrest.errors import (
    DEFAULT_ERROR_CODES,
    ApiError,
    ErrorCodeRegistry,
    MissingPermissionsError,
)

if TYPE_CHECKING:
    from chatrest.request import RestRequest


RATELIMIT_STATUS = 429
FORBIDDEN_STATUS = 403


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def is_ratelimited(response: httpx.Response) -> bool:
    return response.status_code == RATELIMIT_STATUS


def _error_payload(response: httpx.Response) -> dict[str, Any] | None:
    """Parse an error body. Empty, non-JSON and non-object bodies yield None."""
    if not response.content:
        return None
    try:
        payload = json.loads(response.content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _error_code(payload: dict[str, Any] | None) -> int | None:
    if payload is None or "code" not in payload:
        return None
    code = payload["code"]
    # bool is an int subclass; true/false is not a code
    if isinstance(code, bool):
        return None
    try:
        return int(code)
    except (TypeError, ValueError):
        return None


def _describe(response: httpx.Response) -> str:
    body = response.text if response.content else "empty"
    return f"Received a {response.status_code} response with body {body}"


def classify_response(
    response: httpx.Response,
    request: RestRequest | None = None,
    registry: ErrorCodeRegistry = DEFAULT_ERROR_CODES,
) -> httpx.Response:
    """Return response if it is a success or rate-limit signal, else raise.

    Args:
        response: Response whose body has already been read.
        request: The request that produced it; attached to raised errors.
        registry: Error code table used for semantic errors.

    Returns:
        The same response object, untouched.

    Raises:
        SemanticApiError: If the body carries a registered error code.
        MissingPermissionsError: On 403 without a registered code.
        ApiError: On any other non-2xx, non-429 status.
    """
    status = response.status_code
    if is_success(status) or status == RATELIMIT_STATUS:
        return response

    payload = _error_payload(response)
    code = _error_code(payload)
    if code is not None:
        entry = registry.lookup(code)
        if entry is not None:
            message = payload.get("message") if payload is not None else None
            if not isinstance(message, str) or not message:
                message = entry.default_message
            raise entry.error_cls(message, response, request, code=code)

    if status == FORBIDDEN_STATUS:
        raise MissingPermissionsError(_describe(response), response, request)
    raise ApiError(_describe(response), response, request)

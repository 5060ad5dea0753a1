"""Rate-limit information carried by 429 responses.

Submitters use RatelimitInfo to decide how long to wait before resubmitting
a request. The retry budget itself is tracked on the request
(RestRequest.increment_retry_counter).
"""

from __future__ import annotations

import json
import math

import httpx
from pydantic import BaseModel, ConfigDict, Field

# Used when a 429 carries neither a Retry-After header nor a body hint.
DEFAULT_RETRY_AFTER = 1.0


def _finite(value: str | int | float) -> float | None:
    """Convert value to a finite float. Malformed, NaN and infinite values yield None."""
    try:
        parsed = float(value)
    except (ValueError, OverflowError):
        return None
    return parsed if math.isfinite(parsed) else None


def _header_float(headers: httpx.Headers, name: str) -> float | None:
    value = headers.get(name)
    return _finite(value) if value is not None else None


def _header_int(headers: httpx.Headers, name: str) -> int | None:
    value = _header_float(headers, name)
    return int(value) if value is not None else None


class RatelimitInfo(BaseModel):
    """Rate-limit hints parsed from a response's headers and body."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    retry_after: float = Field(description="Seconds to wait before retrying")
    is_global: bool = Field(default=False, description="Whether the limit is account-wide")
    limit: int | None = Field(default=None, description="X-RateLimit-Limit")
    remaining: int | None = Field(default=None, description="X-RateLimit-Remaining")
    reset_after: float | None = Field(default=None, description="X-RateLimit-Reset-After in seconds")
    bucket: str | None = Field(default=None, description="X-RateLimit-Bucket")

    @classmethod
    def from_response(cls, response: httpx.Response) -> RatelimitInfo:
        """Parse rate-limit hints. The Retry-After header wins over the body."""
        headers = response.headers

        body: dict = {}
        if response.content:
            try:
                parsed = json.loads(response.content)
            except (json.JSONDecodeError, UnicodeDecodeError):
                parsed = None
            if isinstance(parsed, dict):
                body = parsed

        retry_after = _header_float(headers, "retry-after")
        if retry_after is None:
            body_value = body.get("retry_after")
            if isinstance(body_value, (int, float)) and not isinstance(body_value, bool):
                retry_after = _finite(body_value)
        if retry_after is None:
            retry_after = _header_float(headers, "x-ratelimit-reset-after")
        if retry_after is None or retry_after < 0:
            retry_after = DEFAULT_RETRY_AFTER

        is_global = body.get("global") is True or (
            headers.get("x-ratelimit-global", "").lower() == "true"
        )

        return cls(
            retry_after=retry_after,
            is_global=is_global,
            limit=_header_int(headers, "x-ratelimit-limit"),
            remaining=_header_int(headers, "x-ratelimit-remaining"),
            reset_after=_header_float(headers, "x-ratelimit-reset-after"),
            bucket=headers.get("x-ratelimit-bucket"),
        )

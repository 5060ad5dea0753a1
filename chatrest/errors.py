"""Error taxonomy for REST calls.

Transport failures, API rejections and configuration mistakes each get their
own class. A 429 response is not an error: it is returned as a normal
response and handled by the submitter.

Semantic errors keyed by the platform's numeric ``code`` field live in an
open table (ErrorCodeRegistry) so new codes can be added without touching
the classifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, TypeVar

if TYPE_CHECKING:
    import httpx

    from chatrest.models import OriginContext
    from chatrest.request import RestRequest


class ChatRestError(Exception):
    """Base class for chatrest errors."""


class InvalidArgumentError(ChatRestError, ValueError):
    """Raised when a request is configured with an invalid value."""


class UnsupportedMethodError(ChatRestError, ValueError):
    """Raised when a request uses an HTTP method the executor cannot dispatch."""


class TransportError(ChatRestError):
    """Raised when the HTTP call itself fails (connection error, timeout, etc.).

    Never retried by this layer.
    """


class RatelimitExceededError(ChatRestError):
    """Raised when a request was rate limited more often than its retry limit allows."""

    def __init__(self, message: str, request: RestRequest | None = None) -> None:
        super().__init__(message)
        self.request = request

    @property
    def origin(self) -> OriginContext | None:
        return self.request.origin if self.request is not None else None


class ApiError(ChatRestError):
    """Raised when the API answers with a non-2xx, non-429 status.

    Attributes:
        status_code: HTTP status of the response.
        body: Raw response body text (empty string for an empty body).
        response: The httpx response.
        request: The request that produced the response.
        origin: Where the request was built.
    """

    def __init__(
        self,
        message: str,
        response: httpx.Response,
        request: RestRequest | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.response = response
        self.request = request
        self.status_code = response.status_code
        self.body = response.text

    @property
    def origin(self) -> OriginContext | None:
        return self.request.origin if self.request is not None else None

    def __str__(self) -> str:
        if self.origin is None:
            return self.message
        return f"{self.message} (request {self.origin})"


class MissingPermissionsError(ApiError):
    """Raised on a 403 response that carries no more specific error code."""


class SemanticApiError(ApiError):
    """Base class for errors identified by the platform's JSON ``code`` field."""

    code: int = 0

    def __init__(
        self,
        message: str,
        response: httpx.Response,
        request: RestRequest | None = None,
        code: int | None = None,
    ) -> None:
        super().__init__(message, response, request)
        if code is not None:
            self.code = code


# =============================================================================
# Error code table
# =============================================================================


@dataclass(frozen=True)
class ErrorCodeEntry:
    """How to raise a semantic error for one platform error code."""

    code: int
    error_cls: type[SemanticApiError]
    default_message: str


class ErrorCodeRegistry:
    """Open mapping of platform error codes to semantic error classes."""

    def __init__(self) -> None:
        self._entries: dict[int, ErrorCodeEntry] = {}

    def register(
        self,
        code: int,
        error_cls: type[SemanticApiError],
        default_message: str,
    ) -> None:
        """Map code to error_cls. Re-registering a code replaces the entry."""
        self._entries[code] = ErrorCodeEntry(code, error_cls, default_message)

    def lookup(self, code: int) -> ErrorCodeEntry | None:
        return self._entries.get(code)

    def copy(self) -> ErrorCodeRegistry:
        clone = ErrorCodeRegistry()
        clone._entries = dict(self._entries)
        return clone

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)


DEFAULT_ERROR_CODES = ErrorCodeRegistry()

E = TypeVar("E", bound=type[SemanticApiError])


def register_error_code(
    code: int,
    default_message: str,
    registry: ErrorCodeRegistry = DEFAULT_ERROR_CODES,
) -> Callable[[E], E]:
    """Class decorator that registers a SemanticApiError subclass for code."""

    def decorator(error_cls: E) -> E:
        error_cls.code = code
        registry.register(code, error_cls, default_message)
        return error_cls

    return decorator


@register_error_code(50007, "Cannot send message to this user")
class CannotMessageUserError(SemanticApiError):
    """Raised when a message cannot be delivered to a user (code 50007).

    Usually the user has direct messages disabled or shares no server with
    the bot.
    """

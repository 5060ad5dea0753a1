"""Executor - Turns a RestRequest into one HTTP call and classifies the answer.

The executor owns the httpx.Client. It makes no threading decisions: it runs
on whichever worker the submitter calls it from and never retries.
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Callable

import httpx

from chatrest.classifier import classify_response
from chatrest.errors import (
    DEFAULT_ERROR_CODES,
    ErrorCodeRegistry,
    InvalidArgumentError,
    TransportError,
    UnsupportedMethodError,
)
from chatrest.models import ClientConfig, RestMethod
from chatrest.request import RestRequest

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str]

AUTHORIZATION_HEADER = "Authorization"
JSON_MEDIA_TYPE = "application/json"

# Verbs that never carry a payload.
_BODYLESS_METHODS = frozenset({RestMethod.GET})

_HTTP_VERBS: dict[RestMethod, str] = {
    RestMethod.GET: "GET",
    RestMethod.POST: "POST",
    RestMethod.PUT: "PUT",
    RestMethod.DELETE: "DELETE",
    RestMethod.PATCH: "PATCH",
}


def _sanitize_header_value(value: str) -> str:
    """Replace non-ASCII characters with '?' (RFC 7230 header values are ASCII)."""
    return value.encode("ascii", errors="replace").decode("ascii")


def _describe_body(request: RestRequest) -> str:
    if request.multipart_body is not None:
        return f" with multipart body ({len(request.multipart_body.parts)} parts)"
    if request.body is not None:
        body = request.body.decode("utf-8", errors="replace") if isinstance(request.body, bytes) else request.body
        return f" with body {body}"
    return ""


class RestExecutor:
    """Executes RestRequests against the chat platform API.

    Usage:
        with RestExecutor(config, token_provider=lambda: token) as executor:
            response = executor.execute_blocking(request)
    """

    def __init__(
        self,
        config: ClientConfig,
        token_provider: TokenProvider | None = None,
        transport: httpx.BaseTransport | None = None,
        error_codes: ErrorCodeRegistry = DEFAULT_ERROR_CODES,
    ) -> None:
        """Initialize the executor.

        Args:
            config: Connection settings.
            token_provider: Returns the Authorization header value. Defaults
                to config.token.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
            error_codes: Error code table used to classify responses.
        """
        self._config = config
        self._token_provider = token_provider
        self._error_codes = error_codes
        self._client = httpx.Client(**self._build_client_kwargs(config, transport))

    def __enter__(self) -> "RestExecutor":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _build_client_kwargs(
        self, config: ClientConfig, transport: httpx.BaseTransport | None
    ) -> dict[str, Any]:
        """Build kwargs for httpx.Client including TLS configuration."""
        headers = {"User-Agent": config.user_agent}
        headers.update(config.headers)
        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": config.timeout,
        }

        if config.ca_bundle:
            ssl_context = ssl.create_default_context()
            try:
                ssl_context.load_verify_locations(config.ca_bundle)
            except (OSError, ssl.SSLError) as e:
                raise InvalidArgumentError(
                    f"Cannot load CA bundle '{config.ca_bundle}': {e}"
                ) from e
            kwargs["verify"] = ssl_context
        elif not config.verify_ssl:
            kwargs["verify"] = False
        # else: use httpx default (True)

        if transport is not None:
            kwargs["transport"] = transport
        return kwargs

    def _token(self) -> str:
        if self._token_provider is not None:
            return self._token_provider()
        if self._config.token is None:
            raise InvalidArgumentError(
                "Request needs an Authorization header but no token is configured"
            )
        return self._config.token

    def build_http_request(self, request: RestRequest) -> httpx.Request:
        """Assemble the httpx.Request for a RestRequest.

        Payload precedence is multipart, then raw body, then an empty body,
        whatever order the setters were called in. GET sends no payload.

        Raises:
            UnsupportedMethodError: If the method is not GET/POST/PUT/DELETE/PATCH.
            InvalidArgumentError: If authorization is required but no token exists.
        """
        verb = _HTTP_VERBS.get(request.method) if isinstance(request.method, RestMethod) else None
        if verb is None:
            raise UnsupportedMethodError(f"Unsupported HTTP method '{request.method}'")

        url = request.endpoint.full_url(request.url_parameters)
        params = list(request.query_parameters)

        headers: dict[str, str] = {}
        if request.includes_authorization_header:
            headers[AUTHORIZATION_HEADER] = _sanitize_header_value(self._token())

        content: bytes | None = None
        data: dict[str, list[str]] | None = None
        files: list[tuple[str, Any]] | None = None

        if request.method not in _BODYLESS_METHODS:
            if request.multipart_body is not None:
                data, files = request.multipart_body.to_httpx()
                if not files:
                    # httpx only encodes multipart when files are present
                    files = []
                    for name, values in data.items():
                        for value in values:
                            files.append((name, (None, value.encode("utf-8"))))
                    data = None
            elif request.body is not None:
                content = (
                    request.body.encode("utf-8") if isinstance(request.body, str) else request.body
                )
                headers["Content-Type"] = JSON_MEDIA_TYPE
            else:
                content = b""

        return self._client.build_request(
            verb,
            url,
            params=params if params else None,
            headers=headers if headers else None,
            content=content,
            data=data if data else None,
            files=files if files else None,
        )

    def execute_blocking(self, request: RestRequest) -> httpx.Response:
        """Send one attempt of request and classify the response.

        Returns:
            The response if its status is 2xx or 429. The body has been read
            and can be inspected any number of times.

        Raises:
            TransportError: If the HTTP call fails (connection, timeout, encoding).
            SemanticApiError, MissingPermissionsError, ApiError: See classify_response.
            UnsupportedMethodError: If the request's method cannot be dispatched.
        """
        try:
            http_request = self.build_http_request(request)
        except UnicodeEncodeError as e:
            raise TransportError(
                f"Encoding error: non-ASCII characters in request URL "
                f"({e.object[e.start:e.end]!r} at position {e.start})"
            ) from e

        logger.debug(
            "Trying to send %s request to %s%s",
            http_request.method, http_request.url, _describe_body(request),
        )

        try:
            response = self._client.send(http_request)
            response.read()
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout for {http_request.url}: {e}") from e
        except httpx.ConnectError as e:
            raise TransportError(f"Connection error for {http_request.url}: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request error for {http_request.url}: {e}") from e
        except httpx.StreamError as e:
            raise TransportError(f"Malformed response from {http_request.url}: {e}") from e

        logger.debug(
            "Sent %s request to %s and received status code %d with%s body%s",
            http_request.method,
            http_request.url,
            response.status_code,
            "" if response.content else " empty",
            f" {response.text}" if response.content else "",
        )

        return classify_response(response, request, self._error_codes)

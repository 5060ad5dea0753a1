"""Request descriptor - Everything needed to send, and resend, one REST call.

RestRequestBuilder collects the configuration through chainable setters and
build() freezes it into a RestRequest. After that only two things change:
the retry counter (touched by the worker currently running the request) and
the result slot (completed exactly once).

Usage:
    future = (
        client.request(RestMethod.POST, CHANNEL_MESSAGES)
        .set_url_parameters(channel_id)
        .set_body({"content": "hello"})
        .execute(lambda response, body: body["id"])
    )
    message_id = future.result()
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from chatrest.errors import InvalidArgumentError
from chatrest.models import (
    DEFAULT_MAX_RETRIES,
    MultipartBody,
    OriginContext,
    RestMethod,
    coerce_method,
)
from chatrest.result import Transform, complete_once, derive

if TYPE_CHECKING:
    from chatrest.client import RestClient
    from chatrest.endpoints import Endpoint

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _check_max_retries(retries: int) -> int:
    if retries < 0:
        raise InvalidArgumentError(f"Retries cannot be less than 0, got {retries}")
    return retries


class RestRequestBuilder:
    """Chainable configuration for a RestRequest."""

    def __init__(
        self,
        client: RestClient | None,
        method: RestMethod | str,
        endpoint: Endpoint,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self._client = client
        self._method = coerce_method(method)
        self._endpoint = endpoint
        self._url_parameters: tuple[str, ...] = ()
        self._query_parameters: list[tuple[str, str]] = []
        self._body: str | bytes | None = None
        self._multipart_body: MultipartBody | None = None
        self._include_authorization_header = True
        self._max_retries = _check_max_retries(max_retries)
        self._custom_major_parameter: str | None = None

    def add_query_parameter(self, key: str, value: str) -> RestRequestBuilder:
        """Append a query parameter. Repeated keys are sent in insertion order."""
        self._query_parameters.append((key, str(value)))
        return self

    def set_url_parameters(self, *parameters: str) -> RestRequestBuilder:
        """Set the positional URL parameters, e.g. a channel id."""
        self._url_parameters = tuple(str(p) for p in parameters)
        return self

    def set_body(self, body: Any) -> RestRequestBuilder:
        """Set the raw body. Non-string values are encoded as compact JSON.

        Ignored at send time when a multipart body is also set.
        """
        if body is None or isinstance(body, (str, bytes)):
            self._body = body
        else:
            self._body = json.dumps(body, separators=(",", ":"))
        return self

    def set_multipart_body(self, body: MultipartBody | None) -> RestRequestBuilder:
        """Set the multipart body. It takes precedence over set_body()."""
        self._multipart_body = body
        return self

    def set_max_retries(self, retries: int) -> RestRequestBuilder:
        """Set how many times a rate-limited request may be resubmitted.

        Raises:
            InvalidArgumentError: If retries is negative.
        """
        self._max_retries = _check_max_retries(retries)
        return self

    def set_custom_major_parameter(self, value: str | None) -> RestRequestBuilder:
        """Override the major parameter for routes where it is not in the URL."""
        self._custom_major_parameter = value
        return self

    def include_authorization_header(self, include: bool) -> RestRequestBuilder:
        self._include_authorization_header = include
        return self

    def build(self) -> RestRequest:
        return RestRequest(
            client=self._client,
            method=self._method,
            endpoint=self._endpoint,
            url_parameters=self._url_parameters,
            query_parameters=tuple(self._query_parameters),
            body=self._body,
            multipart_body=(
                self._multipart_body.model_copy(deep=True)
                if self._multipart_body is not None
                else None
            ),
            include_authorization_header=self._include_authorization_header,
            max_retries=self._max_retries,
            custom_major_parameter=self._custom_major_parameter,
        )

    def execute(self, transform: Transform[T]) -> Future[T]:
        """Build the request and execute it. See RestRequest.execute()."""
        return self.build().execute(transform)


class RestRequest:
    """One REST call: frozen configuration, retry counter and result slot."""

    def __init__(
        self,
        client: RestClient | None,
        method: RestMethod | str,
        endpoint: Endpoint,
        url_parameters: tuple[str, ...] = (),
        query_parameters: tuple[tuple[str, str], ...] = (),
        body: str | bytes | None = None,
        multipart_body: MultipartBody | None = None,
        include_authorization_header: bool = True,
        max_retries: int = DEFAULT_MAX_RETRIES,
        custom_major_parameter: str | None = None,
    ) -> None:
        self._client = client
        self._method = coerce_method(method)
        self._endpoint = endpoint
        self._url_parameters = tuple(url_parameters)
        self._query_parameters = tuple(query_parameters)
        self._body = body
        self._multipart_body = multipart_body
        self._include_authorization_header = include_authorization_header
        self._max_retries = _check_max_retries(max_retries)
        self._custom_major_parameter = custom_major_parameter

        self._retry_counter = 0
        self._result: Future[httpx.Response] = Future()
        self._submitted = False
        self._submit_lock = threading.Lock()

        self._origin = OriginContext.capture(self._method, str(endpoint))

    @property
    def client(self) -> RestClient | None:
        return self._client

    @property
    def method(self) -> RestMethod | str:
        return self._method

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def url_parameters(self) -> tuple[str, ...]:
        return self._url_parameters

    @property
    def query_parameters(self) -> tuple[tuple[str, str], ...]:
        return self._query_parameters

    @property
    def body(self) -> str | bytes | None:
        return self._body

    @property
    def multipart_body(self) -> MultipartBody | None:
        return self._multipart_body

    @property
    def includes_authorization_header(self) -> bool:
        return self._include_authorization_header

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def custom_major_parameter(self) -> str | None:
        return self._custom_major_parameter

    @property
    def retry_counter(self) -> int:
        return self._retry_counter

    @property
    def origin(self) -> OriginContext:
        return self._origin

    def get_major_url_parameter(self) -> str | None:
        """Return the value that selects this request's rate-limit bucket.

        The custom major parameter wins. Otherwise the URL parameter at the
        endpoint's major position is used, if that position exists.
        """
        if self._custom_major_parameter is not None:
            return self._custom_major_parameter
        position = self._endpoint.major_parameter_position
        if position is None or position < 0 or position >= len(self._url_parameters):
            return None
        return self._url_parameters[position]

    def increment_retry_counter(self) -> bool:
        """Count one more rate-limited attempt.

        Only the worker currently running this request may call this.

        Returns:
            True if the retry limit is now exceeded.
        """
        self._retry_counter += 1
        return self._retry_counter > self._max_retries

    def get_result(self) -> Future[httpx.Response]:
        """Return the raw result slot. Does not start execution."""
        return self._result

    def complete(self, response: httpx.Response) -> bool:
        """Deliver the response. Returns False if the result was already set."""
        if complete_once(self._result, result=response):
            return True
        logger.warning("Ignoring second completion of request %s", self._origin)
        return False

    def fail(self, error: BaseException) -> bool:
        """Deliver a failure. Returns False if the result was already set."""
        if complete_once(self._result, exception=error):
            return True
        logger.warning(
            "Ignoring failure %r for already completed request %s", error, self._origin
        )
        return False

    def execute(self, transform: Transform[T]) -> Future[T]:
        """Submit the request (first call only) and return a transformed result.

        Args:
            transform: Called with (response, parsed JSON body or None) once
                the request succeeds.

        Returns:
            Future resolving to transform's return value, or failing with the
            request's error or whatever transform raised.
        """
        if self._client is None:
            raise InvalidArgumentError("Request has no client to submit it to")
        with self._submit_lock:
            submit = not self._submitted
            self._submitted = True
        if submit:
            logger.debug("Submitting request %s", self._origin)
            self._client.submitter.submit(self)
        return derive(self._result, transform)

    def execute_blocking(self) -> httpx.Response:
        """Run one attempt on the calling thread. Used by submitters.

        Returns:
            A 2xx or 429 response.

        Raises:
            TransportError: If the HTTP call fails.
            ApiError: If the API rejects the request.
        """
        if self._client is None:
            raise InvalidArgumentError("Request has no client to execute it with")
        return self._client.executor.execute_blocking(self)

    def __repr__(self) -> str:
        method = self._method.value if isinstance(self._method, RestMethod) else self._method
        return (
            f"RestRequest({method} {self._endpoint} params={list(self._url_parameters)} "
            f"retries={self._retry_counter}/{self._max_retries})"
        )

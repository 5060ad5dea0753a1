"""RestClient - Wires configuration, executor and submitter together."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from chatrest.config_loader import load_runtime_config
from chatrest.endpoints import Endpoint, RestEndpoint
from chatrest.errors import DEFAULT_ERROR_CODES, ErrorCodeRegistry
from chatrest.executor import RestExecutor, TokenProvider
from chatrest.models import ClientConfig, RestMethod
from chatrest.request import RestRequestBuilder
from chatrest.submitter import RequestSubmitter, ThreadPoolSubmitter


class RestClient:
    """Entry point for building and running REST requests.

    Usage:
        with RestClient(ClientConfig(base_url=..., token=...)) as client:
            future = (
                client.request(RestMethod.GET, RestEndpoint("/users/{}", 0))
                .set_url_parameters("123")
                .execute(lambda response, body: body["username"])
            )
            print(future.result())
    """

    def __init__(
        self,
        config: ClientConfig,
        submitter: RequestSubmitter | None = None,
        token_provider: TokenProvider | None = None,
        transport: httpx.BaseTransport | None = None,
        error_codes: ErrorCodeRegistry = DEFAULT_ERROR_CODES,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings.
            submitter: Scheduler that runs submitted requests. Defaults to a
                ThreadPoolSubmitter owned (and shut down) by this client.
            token_provider: Returns the Authorization header value.
            transport: Optional httpx transport, mainly for tests.
            error_codes: Error code table used to classify responses.
        """
        self._config = config
        self._executor = RestExecutor(config, token_provider, transport, error_codes)
        self._owns_submitter = submitter is None
        self._submitter: RequestSubmitter = submitter or ThreadPoolSubmitter()

    @classmethod
    def from_config_file(cls, config_path: Path, **kwargs: Any) -> RestClient:
        """Create a client from a runtime YAML config file.

        Raises:
            ConfigError: If the file cannot be loaded.
        """
        runtime_config = load_runtime_config(config_path)
        return cls(runtime_config.client, **kwargs)

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Shut down an owned submitter (waiting for running requests), then the executor."""
        try:
            if self._owns_submitter and isinstance(self._submitter, ThreadPoolSubmitter):
                self._submitter.shutdown()
        finally:
            self._executor.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def executor(self) -> RestExecutor:
        return self._executor

    @property
    def submitter(self) -> RequestSubmitter:
        return self._submitter

    def request(self, method: RestMethod | str, endpoint: Endpoint) -> RestRequestBuilder:
        """Start building a request. Unbound RestEndpoints are rooted at base_url."""
        if isinstance(endpoint, RestEndpoint):
            endpoint = endpoint.bind(self._config.base_url)
        return RestRequestBuilder(
            self, method, endpoint, max_retries=self._config.default_max_retries
        )

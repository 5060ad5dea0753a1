"""Pytest configuration and fixtures for chatrest tests.

This file provides:
- make_response: Build httpx responses for classifier and result tests
- ScriptedTransport: httpx.MockTransport that replays queued responses and
  records every request it receives
- Fixtures: client config, endpoints, and a client factory wired to an
  InlineSubmitter with a recording sleep
"""

from __future__ import annotations

import json
from typing import Any, Callable, Generator

import httpx
import pytest

from chatrest.client import RestClient
from chatrest.endpoints import RestEndpoint
from chatrest.models import ClientConfig
from chatrest.submitter import InlineSubmitter

BASE_URL = "https://chat.test/api/v10"
TOKEN = "Bot test-token"

_MISSING: Any = object()


def make_response(
    status_code: int = 200,
    json_body: Any = _MISSING,
    text: str | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Create an httpx.Response attached to a dummy request.

    Prefer this over constructing httpx.Response directly - it attaches a
    request so that .text, .json() and raise_for_status() all work.
    """
    if json_body is not _MISSING:
        content = json.dumps(json_body).encode("utf-8")
        all_headers = {"content-type": "application/json"}
    elif text is not None:
        content = text.encode("utf-8")
        all_headers = {"content-type": "text/plain"}
    else:
        content = b""
        all_headers = {}
    all_headers.update(headers or {})
    return httpx.Response(
        status_code,
        headers=all_headers,
        content=content,
        request=httpx.Request("GET", f"{BASE_URL}/test"),
    )


class ScriptedTransport(httpx.MockTransport):
    """Replays queued responses (or raises queued exceptions) in order.

    The last entry repeats once the queue is exhausted.
    """

    def __init__(self, *outcomes: httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._outcomes = list(outcomes) or [httpx.Response(200)]
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self._outcomes) - 1)
        outcome = self._outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            # Responses cannot be sent twice; copy them per call
            return httpx.Response(
                outcome.status_code, headers=outcome.headers, content=outcome.content
            )
        return outcome(request)


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(base_url=BASE_URL, token=TOKEN)


@pytest.fixture
def channel_messages() -> RestEndpoint:
    """Endpoint whose rate-limit bucket is selected by the channel id."""
    return RestEndpoint("/channels/{}/messages", major_parameter_position=0)


@pytest.fixture
def user_endpoint() -> RestEndpoint:
    return RestEndpoint("/users/{}", major_parameter_position=0)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(
    client_config: ClientConfig, recording_sleep: RecordingSleep
) -> Generator[Callable[[ScriptedTransport], RestClient], None, None]:
    """Factory for RestClients that run requests inline against a ScriptedTransport."""
    clients: list[RestClient] = []

    def factory(transport: ScriptedTransport) -> RestClient:
        client = RestClient(
            client_config,
            submitter=InlineSubmitter(sleep=recording_sleep),
            transport=transport,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()

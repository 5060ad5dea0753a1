"""Submitters - Decide where and when a request runs, and resubmit on 429.

A bucket-aware scheduler plugs in through the RequestSubmitter protocol. The
submitters here only honour each 429's retry hint for the request at hand;
they keep no per-bucket state.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Protocol, runtime_checkable

from chatrest.classifier import is_ratelimited
from chatrest.errors import RatelimitExceededError
from chatrest.ratelimit import RatelimitInfo
from chatrest.request import RestRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class RequestSubmitter(Protocol):
    """Takes ownership of a request and eventually completes its result."""

    def submit(self, request: RestRequest) -> None: ...


def run_until_settled(
    request: RestRequest,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Run request until it succeeds, fails, or exhausts its rate-limit retries.

    Every outcome is written to the request's result; nothing is raised.
    """
    while True:
        try:
            response = request.execute_blocking()
        except Exception as e:
            logger.debug("Request %s failed: %s", request.origin, e)
            request.fail(e)
            return

        if not is_ratelimited(response):
            request.complete(response)
            return

        if request.increment_retry_counter():
            request.fail(RatelimitExceededError(
                f"Rate limit retries exhausted after {request.retry_counter - 1} "
                f"retries for request {request.origin}",
                request,
            ))
            return

        try:
            info = RatelimitInfo.from_response(response)
            logger.info(
                "Rate limited%s on %s (retry %d/%d), retrying in %.3fs",
                " globally" if info.is_global else "",
                request.origin,
                request.retry_counter,
                request.max_retries,
                info.retry_after,
            )
            sleep(info.retry_after)
        except Exception as e:
            logger.debug("Waiting out rate limit for %s failed: %s", request.origin, e)
            request.fail(e)
            return


class InlineSubmitter:
    """Runs each request to completion on the submitting thread."""

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def submit(self, request: RestRequest) -> None:
        run_until_settled(request, self._sleep)

    def shutdown(self) -> None:
        pass


class ThreadPoolSubmitter:
    """Runs requests on a pool of worker threads.

    Usage:
        with ThreadPoolSubmitter(max_workers=4) as submitter:
            submitter.submit(request)
            response = request.get_result().result()
    """

    def __init__(
        self,
        max_workers: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="chatrest"
        )
        self._sleep = sleep

    def __enter__(self) -> "ThreadPoolSubmitter":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.shutdown()

    def submit(self, request: RestRequest) -> None:
        self._pool.submit(run_until_settled, request, self._sleep)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

"""Result plumbing between the blocking executor and non-blocking callers.

A request's result slot is a concurrent.futures.Future: it can be completed
once and read by any number of consumers. Callbacks registered here run on
whichever thread completes the slot.
"""

from __future__ import annotations

import json
from concurrent.futures import Future, InvalidStateError
from typing import Any, Callable, TypeVar

import httpx

T = TypeVar("T")

Transform = Callable[[httpx.Response, Any], T]

_UNSET: Any = object()


def parse_body(response: httpx.Response) -> Any:
    """Decode the response body as JSON. An empty body yields None.

    Raises:
        json.JSONDecodeError: If the body is not valid JSON.
    """
    if not response.content:
        return None
    return json.loads(response.content)


def complete_once(
    future: Future[Any],
    *,
    result: Any = _UNSET,
    exception: BaseException | None = None,
) -> bool:
    """Set a result or exception unless the future is already done.

    Returns:
        True if this call completed the future, False if another writer won.
    """
    try:
        if exception is not None:
            future.set_exception(exception)
        else:
            future.set_result(None if result is _UNSET else result)
    except InvalidStateError:
        return False
    return True


def derive(source: Future[httpx.Response], transform: Transform[T]) -> Future[T]:
    """Return a future resolving to transform(response, parsed_body).

    A failed source fails the derived future with the same exception. Errors
    raised while parsing or inside transform, including BaseException
    subclasses, become the derived future's exception unchanged and never reach
    the completing thread.
    """
    derived: Future[T] = Future()

    def _on_done(done: Future[httpx.Response]) -> None:
        if done.cancelled():
            derived.cancel()
            return
        error = done.exception()
        if error is not None:
            complete_once(derived, exception=error)
            return
        response = done.result()
        try:
            value = transform(response, parse_body(response))
        except BaseException as e:
            complete_once(derived, exception=e)
            return
        complete_once(derived, result=value)

    source.add_done_callback(_on_done)
    return derived

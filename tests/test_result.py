"""Tests for the result plumbing (parse_body, complete_once, derive).

Tests cover:
- Transform applied to response and parsed body on success
- Source failures and transform/parse errors propagate unchanged
- Multiple consumers of one result slot
- First writer wins
"""

import json
import threading
from concurrent.futures import Future

import httpx
import pytest

from chatrest.result import complete_once, derive, parse_body
from tests.conftest import make_response


class TestParseBody:
    def test_json_object(self) -> None:
        assert parse_body(make_response(200, json_body={"id": "1"})) == {"id": "1"}

    def test_empty_body_is_none(self) -> None:
        assert parse_body(make_response(204)) is None

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(json.JSONDecodeError):
            parse_body(make_response(200, text="not json"))

    def test_body_still_readable_after_parse(self) -> None:
        response = make_response(200, json_body={"id": "1"})
        parse_body(response)
        assert parse_body(response) == {"id": "1"}
        assert response.json() == {"id": "1"}


class TestCompleteOnce:
    def test_first_result_wins(self) -> None:
        future: Future = Future()
        assert complete_once(future, result=1) is True
        assert complete_once(future, result=2) is False
        assert complete_once(future, exception=RuntimeError()) is False
        assert future.result() == 1

    def test_none_result(self) -> None:
        future: Future = Future()
        assert complete_once(future, result=None) is True
        assert future.result() is None

    def test_concurrent_writers_single_winner(self) -> None:
        future: Future = Future()
        barrier = threading.Barrier(8)
        wins: list[bool] = []
        lock = threading.Lock()

        def writer(value: int) -> None:
            barrier.wait()
            won = complete_once(future, result=value)
            with lock:
                wins.append(won)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert wins.count(True) == 1
        assert future.done()


class TestDerive:
    def test_transform_applied_on_success(self) -> None:
        """GET returning {"id":"123"} resolves with transform(response, body)."""
        source: Future[httpx.Response] = Future()
        response = make_response(200, json_body={"id": "123"})
        calls = []

        def transform(resp: httpx.Response, body: dict) -> str:
            calls.append((resp, body))
            return body["id"]

        derived = derive(source, transform)
        assert not derived.done()

        source.set_result(response)

        assert derived.result(timeout=1) == "123"
        assert calls == [(response, {"id": "123"})]

    def test_transform_on_already_completed_source(self) -> None:
        source: Future[httpx.Response] = Future()
        source.set_result(make_response(200, json_body=[1, 2]))

        derived = derive(source, lambda response, body: len(body))

        assert derived.result(timeout=1) == 2

    def test_transform_exception_propagated_unchanged(self) -> None:
        source: Future[httpx.Response] = Future()
        error = KeyError("missing")

        def transform(response: httpx.Response, body: dict) -> str:
            raise error

        derived = derive(source, transform)
        source.set_result(make_response(200, json_body={}))

        assert derived.exception(timeout=1) is error

    def test_base_exception_from_transform_stays_in_derived(self) -> None:
        class Abort(BaseException):
            pass

        source: Future[httpx.Response] = Future()
        error = Abort()

        def transform(response: httpx.Response, body: dict) -> str:
            raise error

        derived = derive(source, transform)
        # Must not raise on the completing thread
        source.set_result(make_response(200, json_body={}))

        assert derived.done()
        assert derived.exception(timeout=1) is error
        with pytest.raises(Abort):
            derived.result(timeout=1)

    def test_source_failure_propagated_unchanged(self) -> None:
        source: Future[httpx.Response] = Future()
        error = RuntimeError("transport down")
        transform_called = []

        derived = derive(source, lambda response, body: transform_called.append(True))
        source.set_exception(error)

        assert derived.exception(timeout=1) is error
        assert transform_called == []

    def test_parse_error_fails_derived(self) -> None:
        source: Future[httpx.Response] = Future()
        derived = derive(source, lambda response, body: body)
        source.set_result(make_response(200, text="<html>"))

        assert isinstance(derived.exception(timeout=1), json.JSONDecodeError)

    def test_empty_body_passes_none(self) -> None:
        source: Future[httpx.Response] = Future()
        derived = derive(source, lambda response, body: (response.status_code, body))
        source.set_result(make_response(204))

        assert derived.result(timeout=1) == (204, None)

    def test_multiple_consumers(self) -> None:
        source: Future[httpx.Response] = Future()
        first = derive(source, lambda response, body: body["a"])
        second = derive(source, lambda response, body: body["b"])

        source.set_result(make_response(200, json_body={"a": 1, "b": 2}))

        assert first.result(timeout=1) == 1
        assert second.result(timeout=1) == 2
        assert source.result().json() == {"a": 1, "b": 2}

    def test_continuation_runs_on_completing_thread(self) -> None:
        source: Future[httpx.Response] = Future()
        seen: list[str] = []
        derived = derive(source, lambda response, body: seen.append(threading.current_thread().name))

        worker = threading.Thread(
            target=source.set_result, args=(make_response(200, json_body={}),), name="completer"
        )
        worker.start()
        worker.join()

        derived.result(timeout=1)
        assert seen == ["completer"]

    def test_cancelled_source_cancels_derived(self) -> None:
        source: Future[httpx.Response] = Future()
        derived = derive(source, lambda response, body: body)
        source.cancel()
        assert derived.cancelled()

"""FeedController behaviour with real worker threads and short intervals."""
from __future__ import annotations

import itertools
import queue
import threading
import time
from unittest.mock import MagicMock

import pytest

from iot_marketplace.exceptions import ConfigurationError, InvalidFeedStateError, UnknownFeedError
from iot_marketplace.feed.controller import FeedController
from iot_marketplace.feed.types import FeedConfiguration, FeedEventKind, FeedHandle, FeedStatus

WAIT = 2.0


@pytest.fixture
def controller():
    ctrl = FeedController(join_timeout=WAIT)
    yield ctrl
    ctrl.shutdown()


def gated_fetch(gate: threading.Event, started: threading.Event = None):
    def fetch(parameters):
        if started is not None:
            started.set()
        gate.wait(WAIT)
        return {"parameters": parameters}
    return fetch


class TestFeedControllerLifecycle:
    def test_start_then_stop_delivers_nothing(self, controller):
        gate = threading.Event()
        on_success = MagicMock()
        handle = controller.start(FeedConfiguration(
            fetch=gated_fetch(gate), interval=0.05, lifetime=10, on_success=on_success,
        ))
        stream = controller.events(handle)

        assert controller.stop(handle) is FeedStatus.STOPPED
        gate.set()

        event = stream.get(timeout=WAIT)
        assert event.kind is FeedEventKind.CLOSED
        assert event.status is FeedStatus.STOPPED
        on_success.assert_not_called()
        assert controller.status(handle) is FeedStatus.STOPPED

    def test_repeated_and_concurrent_stop_return_same_status(self, controller):
        gate = threading.Event()
        handle = controller.start(FeedConfiguration(fetch=gated_fetch(gate), interval=0.05, lifetime=10))

        results = []
        threads = [threading.Thread(target=lambda: results.append(controller.stop(handle))) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(WAIT)
        gate.set()

        assert results == [FeedStatus.STOPPED] * 5
        assert controller.stop(handle) is FeedStatus.STOPPED

    def test_success_callback_receives_handle_and_result(self, controller):
        delivered = threading.Event()
        calls = []

        def on_success(handle, result):
            calls.append((handle, result))
            delivered.set()

        handle = controller.start(FeedConfiguration(
            fetch=lambda params: params["radius"],
            parameters={"radius": 777},
            interval=0.05,
            lifetime=10,
            on_success=on_success,
        ))

        assert delivered.wait(WAIT)
        assert calls[0] == (handle, 777)

    def test_failed_poll_keeps_feed_running(self, controller):
        failed = threading.Event()
        errors = []

        def on_failure(handle, error):
            errors.append(error)
            failed.set()

        handle = controller.start(FeedConfiguration(
            fetch=MagicMock(side_effect=RuntimeError("provider down")),
            interval=0.05,
            lifetime=10,
            on_failure=on_failure,
        ))

        assert failed.wait(WAIT)
        assert isinstance(errors[0], RuntimeError)
        assert controller.status(handle) is FeedStatus.RUNNING

    def test_consecutive_failure_limit_moves_feed_to_failed(self, controller):
        on_failure = MagicMock()
        handle = controller.start(FeedConfiguration(
            fetch=MagicMock(side_effect=RuntimeError("boom")),
            interval=0.01,
            lifetime=10,
            on_failure=on_failure,
            max_consecutive_failures=2,
        ))
        stream = controller.events(handle)

        kinds = [event.kind for event in stream]

        assert kinds[-1] is FeedEventKind.CLOSED
        assert controller.status(handle) is FeedStatus.FAILED
        assert on_failure.call_count == 2

    def test_success_between_failures_resets_the_count(self, controller):
        failures = []
        third_failure = threading.Event()

        def on_failure(handle, error):
            failures.append(error)
            if len(failures) >= 3:
                third_failure.set()

        handle = controller.start(FeedConfiguration(
            fetch=MagicMock(side_effect=itertools.cycle([RuntimeError("boom"), "ok"])),
            interval=0.01,
            lifetime=10,
            on_failure=on_failure,
            max_consecutive_failures=2,
        ))

        assert third_failure.wait(WAIT)
        assert controller.status(handle) is FeedStatus.RUNNING

    def test_stop_from_failure_callback(self, controller):
        def on_failure(handle, error):
            controller.stop(handle)

        handle = controller.start(FeedConfiguration(
            fetch=MagicMock(side_effect=RuntimeError("boom")),
            interval=0.01,
            lifetime=10,
            on_failure=on_failure,
        ))
        stream = controller.events(handle)

        events = list(stream)

        assert events[-1].status is FeedStatus.STOPPED

    def test_callback_exception_does_not_stop_feed(self, controller):
        second = threading.Event()
        count = {"n": 0}

        def on_success(handle, result):
            count["n"] += 1
            if count["n"] >= 2:
                second.set()
            raise ValueError("caller bug")

        handle = controller.start(FeedConfiguration(
            fetch=lambda params: "data", interval=0.02, lifetime=10, on_success=on_success,
        ))

        assert second.wait(WAIT)
        assert controller.status(handle) is FeedStatus.RUNNING

    def test_feed_expires_after_lifetime(self, controller):
        fetch = MagicMock(return_value="data")
        handle = controller.start(FeedConfiguration(fetch=fetch, interval=0.05, lifetime=0.12))
        stream = controller.events(handle)

        events = list(stream)

        assert events[-1].status is FeedStatus.EXPIRED
        assert 1 <= fetch.call_count <= 3

    def test_lifetime_in_the_past_expires_feed(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: "data", interval=0.05, lifetime=60))
        stream = controller.events(handle)

        controller.set_lifetime(handle, 0)

        closed = [e for e in stream if e.kind is FeedEventKind.CLOSED]
        assert closed[0].status is FeedStatus.EXPIRED


class TestFeedControllerControl:
    def test_pause_and_resume(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: "data", interval=0.05, lifetime=10))

        controller.pause(handle)
        assert controller.status(handle) is FeedStatus.PAUSED
        with pytest.raises(InvalidFeedStateError):
            controller.pause(handle)

        assert controller.resume(handle) is FeedStatus.RUNNING
        with pytest.raises(InvalidFeedStateError):
            controller.resume(handle)

    def test_pause_lets_in_flight_poll_deliver_then_holds(self, controller):
        on_success = MagicMock()
        gate = threading.Event()
        started = threading.Event()
        handle = controller.start(FeedConfiguration(
            fetch=gated_fetch(gate, started), interval=0.01, lifetime=10, on_success=on_success,
        ))
        stream = controller.events(handle)
        assert started.wait(WAIT)

        controller.pause(handle)
        gate.set()

        assert stream.get(timeout=WAIT).kind is FeedEventKind.RESULT
        with pytest.raises(queue.Empty):
            stream.get(timeout=0.2)
        assert on_success.call_count == 1
        assert controller.status(handle) is FeedStatus.PAUSED

    def test_unbounded_lifetime_survives_pause_and_resume(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: "data", interval=0.05, lifetime=float("inf")))
        controller.pause(handle)
        # Let the worker park in its paused wait
        time.sleep(0.1)
        stream = controller.events(handle)

        assert controller.resume(handle) is FeedStatus.RUNNING

        assert stream.get(timeout=WAIT).kind is FeedEventKind.RESULT
        assert controller.stop(handle) is FeedStatus.STOPPED
        assert stream.get(timeout=WAIT).kind is FeedEventKind.CLOSED

    def test_start_rejects_bad_configuration(self, controller):
        with pytest.raises(ConfigurationError):
            controller.start(FeedConfiguration(fetch=lambda p: None, interval=0, lifetime=10))
        with pytest.raises(ConfigurationError):
            controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=-1))
        assert controller.handles() == []

    def test_unknown_handle(self, controller):
        with pytest.raises(UnknownFeedError):
            controller.status(FeedHandle("missing"))

    def test_caller_supplied_handle(self, controller):
        handle = FeedHandle("mine")
        assert controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=10), handle=handle) == handle
        with pytest.raises(ValueError):
            controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=10), handle=handle)

    def test_events_on_finished_feed_close_immediately(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=10))
        controller.stop(handle)

        event = controller.events(handle).get(timeout=WAIT)

        assert event.kind is FeedEventKind.CLOSED

    def test_stream_receives_results(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: "payload", interval=0.02, lifetime=10))

        with controller.events(handle) as stream:
            event = stream.get(timeout=WAIT)

        assert event.kind is FeedEventKind.RESULT
        assert event.result == "payload"
        assert stream.closed

    def test_shutdown_stops_every_feed(self, controller):
        handles = [
            controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=10))
            for _ in range(3)
        ]

        controller.shutdown()

        assert {controller.status(h) for h in handles} == {FeedStatus.STOPPED}

    def test_forget_releases_finished_feeds_only(self, controller):
        handle = controller.start(FeedConfiguration(fetch=lambda p: None, interval=1, lifetime=10))

        with pytest.raises(InvalidFeedStateError):
            controller.forget(handle)

        controller.stop(handle)
        controller.forget(handle)

        assert handle not in controller.handles()
        with pytest.raises(UnknownFeedError):
            controller.status(handle)

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Dict, Iterator, List, Optional

from iot_marketplace.exceptions import InvalidFeedStateError, UnknownFeedError
from iot_marketplace.feed.schedule import Action, FeedSchedule
from iot_marketplace.feed.types import (
    FeedConfiguration,
    FeedEvent,
    FeedEventKind,
    FeedHandle,
    FeedStatus,
)

logger = logging.getLogger(__name__)


class FeedEventStream:
    """
    Queue-backed view of one feed's deliveries.

    Receives every RESULT/FAILURE event published after it was opened and a
    final CLOSED event once the feed reaches a terminal status.
    """

    def __init__(self, handle: FeedHandle, on_close: Callable[["FeedEventStream"], None]):
        self.handle = handle
        self._queue: "queue.Queue[FeedEvent]" = queue.Queue()
        self._on_close = on_close
        self.closed = False

    def _publish(self, event: FeedEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> FeedEvent:
        """Next event; raises queue.Empty when nothing arrives within timeout"""
        event = self._queue.get(timeout=timeout)
        if event.kind is FeedEventKind.CLOSED:
            self.close()
        return event

    def __iter__(self) -> Iterator[FeedEvent]:
        while True:
            event = self.get()
            yield event
            if event.kind is FeedEventKind.CLOSED:
                return

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._on_close(self)

    def __enter__(self) -> "FeedEventStream":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class _Feed:
    def __init__(self, handle: FeedHandle, configuration: FeedConfiguration, schedule: FeedSchedule, wakeup: threading.Condition):
        self.handle = handle
        self.configuration = configuration
        self.schedule = schedule
        self.wakeup = wakeup
        self.thread: Optional[threading.Thread] = None
        self.in_flight = False
        self.consecutive_failures = 0
        self.streams: List[FeedEventStream] = []
        self.closed = False


class FeedController:
    """
    Runs continuous access feeds, one worker thread per feed.

    Control operations (pause, resume, stop, set_lifetime) may be called from
    any thread, callbacks included; they take effect at the feed's next
    scheduling decision and never interrupt a delivery in progress. A poll
    already in flight when the feed is paused still delivers its result; one
    in flight when the feed stops or expires is discarded.

    Finished feeds stay queryable until released with `forget`.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, join_timeout: float = 5.0):
        self._clock = clock
        self._join_timeout = join_timeout
        self._lock = threading.RLock()
        self._feeds: Dict[FeedHandle, _Feed] = {}

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def start(self, configuration: FeedConfiguration, handle: Optional[FeedHandle] = None) -> FeedHandle:
        """Start polling; the first poll is scheduled immediately"""
        handle = handle or FeedHandle.new()
        with self._lock:
            if handle in self._feeds:
                raise ValueError(f"Feed handle {handle} is already in use")
            schedule = FeedSchedule(configuration.interval, configuration.lifetime, self._clock())
            feed = _Feed(handle, configuration, schedule, threading.Condition(self._lock))
            feed.thread = threading.Thread(target=self._run, args=(feed,), name=f"feed-{handle}", daemon=True)
            self._feeds[handle] = feed
            feed.thread.start()

        logger.info(
            "Started feed %s (interval=%ss, lifetime=%ss)",
            handle, configuration.interval, configuration.lifetime,
        )
        return handle

    def stop(self, handle: FeedHandle) -> FeedStatus:
        """Stop the feed; calling it again returns the same terminal status"""
        with self._lock:
            feed = self._get(handle)
            if feed.schedule.status.is_terminal:
                return feed.schedule.status
            status = feed.schedule.stop()
            feed.wakeup.notify_all()
            thread = feed.thread
            in_flight = feed.in_flight

        logger.info("Stopping feed %s", handle)
        if thread is not None and thread is not threading.current_thread() and not in_flight:
            thread.join(self._join_timeout)
        return status

    def pause(self, handle: FeedHandle) -> None:
        with self._lock:
            feed = self._get(handle)
            feed.schedule.pause(self._clock())
            feed.wakeup.notify_all()
        logger.info("Paused feed %s", handle)

    def resume(self, handle: FeedHandle) -> FeedStatus:
        with self._lock:
            feed = self._get(handle)
            feed.schedule.resume(self._clock())
            feed.wakeup.notify_all()
            status = feed.schedule.status
        logger.info("Resumed feed %s -> %s", handle, status.value)
        return status

    def set_lifetime(self, handle: FeedHandle, seconds: float) -> None:
        with self._lock:
            feed = self._get(handle)
            feed.schedule.set_lifetime(seconds)
            feed.wakeup.notify_all()
        logger.info("Feed %s lifetime set to %ss", handle, seconds)

    def status(self, handle: FeedHandle) -> FeedStatus:
        with self._lock:
            return self._get(handle).schedule.status

    def remaining_lifetime(self, handle: FeedHandle) -> float:
        with self._lock:
            return self._get(handle).schedule.remaining(self._clock())

    def events(self, handle: FeedHandle) -> FeedEventStream:
        """Open a stream of this feed's deliveries"""
        with self._lock:
            feed = self._get(handle)
            stream = FeedEventStream(handle, self._detach)
            if feed.closed:
                stream._publish(FeedEvent(handle, FeedEventKind.CLOSED, status=feed.schedule.status))
            else:
                feed.streams.append(stream)
            return stream

    def handles(self) -> List[FeedHandle]:
        with self._lock:
            return list(self._feeds)

    def forget(self, handle: FeedHandle) -> None:
        """Drop a finished feed; its handle becomes unknown"""
        with self._lock:
            feed = self._get(handle)
            if not feed.schedule.status.is_terminal:
                raise InvalidFeedStateError(f"Cannot forget feed {handle} while it is {feed.schedule.status.value}")
            del self._feeds[handle]

    def shutdown(self) -> None:
        """Stop every feed that is still live"""
        for handle in self.handles():
            self.stop(handle)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _get(self, handle: FeedHandle) -> _Feed:
        feed = self._feeds.get(handle)
        if feed is None:
            raise UnknownFeedError(f"Unknown feed handle: {handle}")
        return feed

    def _detach(self, stream: FeedEventStream) -> None:
        with self._lock:
            feed = self._feeds.get(stream.handle)
            if feed is not None and stream in feed.streams:
                feed.streams.remove(stream)

    def _run(self, feed: _Feed) -> None:
        config = feed.configuration
        while True:
            with self._lock:
                if not self._await_poll(feed):
                    self._close(feed)
                    return
                feed.schedule.record_poll(self._clock())
                feed.in_flight = True
                poll_number = feed.schedule.polls

            logger.debug("Feed %s poll #%d", feed.handle, poll_number)
            result, error = None, None
            try:
                result = config.fetch(config.parameters)
            except Exception as e:
                error = e

            with self._lock:
                feed.in_flight = False
                if not feed.schedule.accepts_results(self._clock()):
                    logger.debug("Feed %s is %s; discarding poll #%d", feed.handle, feed.schedule.status.value, poll_number)
                    continue
                if error is None:
                    feed.consecutive_failures = 0
                else:
                    feed.consecutive_failures += 1
                failures = feed.consecutive_failures

            if error is None:
                self._deliver(feed, FeedEvent(feed.handle, FeedEventKind.RESULT, result=result))
                continue

            logger.warning("Feed %s poll #%d failed: %s", feed.handle, poll_number, error)
            self._deliver(feed, FeedEvent(feed.handle, FeedEventKind.FAILURE, error=error))

            limit = config.max_consecutive_failures
            if limit is not None and failures >= limit:
                with self._lock:
                    if not feed.schedule.status.is_terminal:
                        logger.error("Feed %s failed %d times in a row; giving up", feed.handle, failures)
                        feed.schedule.fail()

    def _await_poll(self, feed: _Feed) -> bool:
        """Block (lock held) until a poll is due; False once the feed is finished"""
        while True:
            decision = feed.schedule.decide(self._clock())
            if decision.action is Action.FINISH:
                return False
            if decision.action is Action.POLL:
                return True
            # Condition.wait overflows past TIMEOUT_MAX, e.g. for an unbounded lifetime
            feed.wakeup.wait(min(decision.wait, threading.TIMEOUT_MAX))

    def _deliver(self, feed: _Feed, event: FeedEvent) -> None:
        config = feed.configuration
        with self._lock:
            streams = list(feed.streams)
        for stream in streams:
            stream._publish(event)

        callback = config.on_success if event.kind is FeedEventKind.RESULT else config.on_failure
        if callback is None:
            return
        payload = event.result if event.kind is FeedEventKind.RESULT else event.error
        try:
            callback(feed.handle, payload)
        except Exception:
            logger.exception("Feed %s %s callback raised", feed.handle, event.kind.value.lower())

    def _close(self, feed: _Feed) -> None:
        status = feed.schedule.status
        feed.closed = True
        streams, feed.streams = feed.streams, []
        for stream in streams:
            stream._publish(FeedEvent(feed.handle, FeedEventKind.CLOSED, status=status))
        logger.info("Feed %s finished with status %s after %d poll(s)", feed.handle, status.value, feed.schedule.polls)

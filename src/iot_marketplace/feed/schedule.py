"""Scheduling state of a single feed

FeedSchedule holds no threads and reads no clock: every operation takes the
current time, which keeps the lifecycle rules deterministic and lets the
controller drive it from its worker thread.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from iot_marketplace.exceptions import ConfigurationError, InvalidFeedStateError
from iot_marketplace.feed.types import FeedStatus


class Action(str, Enum):
    POLL = "POLL"
    WAIT = "WAIT"
    FINISH = "FINISH"


@dataclass(frozen=True)
class Decision:
    action: Action
    # Seconds to wait for WAIT decisions
    wait: Optional[float] = None


class FeedSchedule:
    """Fixed-rate polling window with pause, resume and lifetime changes"""

    def __init__(self, interval: float, lifetime: float, started_at: float):
        if interval is None or math.isnan(interval) or interval <= 0:
            raise ConfigurationError(f"Feed interval must be positive, got {interval}")
        if lifetime is None or math.isnan(lifetime) or lifetime <= 0:
            raise ConfigurationError(f"Feed lifetime must be positive, got {lifetime}")

        self.interval = float(interval)
        self.started_at = started_at
        self.deadline = started_at + float(lifetime)
        self.next_poll_at = started_at
        self.last_poll_at: Optional[float] = None
        self.polls = 0
        self.status = FeedStatus.RUNNING

    @property
    def lifetime(self) -> float:
        return self.deadline - self.started_at

    def remaining(self, now: float) -> float:
        return max(0.0, self.deadline - now)

    def decide(self, now: float) -> Decision:
        """Next scheduling decision; expires the feed once its deadline passed"""
        if self.status.is_terminal:
            return Decision(Action.FINISH)

        if now >= self.deadline:
            self.status = FeedStatus.EXPIRED
            return Decision(Action.FINISH)

        if self.status is FeedStatus.PAUSED:
            return Decision(Action.WAIT, self.deadline - now)

        if now >= self.next_poll_at:
            return Decision(Action.POLL)

        return Decision(Action.WAIT, min(self.next_poll_at, self.deadline) - now)

    def record_poll(self, now: float) -> None:
        self.polls += 1
        self.last_poll_at = now
        self.next_poll_at += self.interval
        if self.next_poll_at <= now:
            # The poll overran one or more slots; skip them instead of bursting
            self.next_poll_at = now + self.interval

    def accepts_results(self, now: float) -> bool:
        # A pause lets the poll already in flight deliver; stop and expiry do not
        return not self.status.is_terminal and now < self.deadline

    def pause(self, now: float) -> None:
        if self.status is not FeedStatus.RUNNING:
            raise InvalidFeedStateError(f"Cannot pause a feed that is {self.status.value}")
        self.status = FeedStatus.PAUSED

    def resume(self, now: float) -> None:
        if self.status is not FeedStatus.PAUSED:
            raise InvalidFeedStateError(f"Cannot resume a feed that is {self.status.value}")
        if now >= self.deadline:
            self.status = FeedStatus.EXPIRED
            return
        self.status = FeedStatus.RUNNING
        self.next_poll_at = now + self.interval

    def set_lifetime(self, seconds: float) -> None:
        if seconds is None or math.isnan(seconds) or seconds < 0:
            raise ConfigurationError(f"Feed lifetime must not be negative, got {seconds}")
        if self.status.is_terminal:
            raise InvalidFeedStateError(f"Cannot change lifetime of a feed that is {self.status.value}")
        self.deadline = self.started_at + float(seconds)

    def stop(self) -> FeedStatus:
        if not self.status.is_terminal:
            self.status = FeedStatus.STOPPED
        return self.status

    def fail(self) -> None:
        if not self.status.is_terminal:
            self.status = FeedStatus.FAILED

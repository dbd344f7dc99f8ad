"""Feed type definitions

Data structures shared by the feed schedule, the feed controller and the
access feed wrapper.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional


class FeedStatus(str, Enum):
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (FeedStatus.STOPPED, FeedStatus.EXPIRED, FeedStatus.FAILED)


@dataclass(frozen=True)
class FeedHandle:
    """Opaque identifier of one feed owned by the caller"""

    id: str

    @classmethod
    def new(cls) -> "FeedHandle":
        return cls(id=uuid.uuid4().hex[:12])

    def __str__(self) -> str:
        return self.id


SuccessCallback = Callable[[FeedHandle, Any], None]
FailureCallback = Callable[[FeedHandle, BaseException], None]


@dataclass(frozen=True)
class FeedConfiguration:
    """Everything a feed needs to run

    Args:
        fetch: Access call invoked on every poll with ``parameters``
        parameters: Access parameters passed to ``fetch``
        interval: Seconds between two polls
        lifetime: Seconds, counted from start, during which the feed polls
        on_success: Called with (handle, result) after a successful poll
        on_failure: Called with (handle, error) after a failed poll
        max_consecutive_failures: Move the feed to FAILED after this many
            failed polls in a row. None keeps the feed running forever.
    """

    fetch: Callable[[Any], Any]
    interval: float
    lifetime: float
    parameters: Any = None
    on_success: Optional[SuccessCallback] = None
    on_failure: Optional[FailureCallback] = None
    max_consecutive_failures: Optional[int] = None


class FeedEventKind(str, Enum):
    RESULT = "RESULT"
    FAILURE = "FAILURE"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class FeedEvent:
    handle: FeedHandle
    kind: FeedEventKind
    result: Any = None
    error: Optional[BaseException] = None
    status: Optional[FeedStatus] = None

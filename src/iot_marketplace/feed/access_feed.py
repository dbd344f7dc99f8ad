from __future__ import annotations

from typing import Any, Callable, Optional

from iot_marketplace.feed.controller import FeedController, FeedEventStream
from iot_marketplace.feed.types import FeedConfiguration, FeedHandle, FeedStatus


class AccessFeed:
    """Continuous access to one offering, backed by a FeedController feed"""

    def __init__(
        self,
        controller: FeedController,
        fetch: Callable[[Any], Any],
        parameters: Any,
        lifetime_seconds: float,
        interval_seconds: float,
        on_success: Optional[Callable[["AccessFeed", Any], None]] = None,
        on_failure: Optional[Callable[["AccessFeed", BaseException], None]] = None,
        max_consecutive_failures: Optional[int] = None,
    ):
        self._controller = controller
        self.handle = FeedHandle.new()
        self.parameters = parameters

        configuration = FeedConfiguration(
            fetch=fetch,
            parameters=parameters,
            interval=interval_seconds,
            lifetime=lifetime_seconds,
            on_success=(lambda _handle, result: on_success(self, result)) if on_success else None,
            on_failure=(lambda _handle, error: on_failure(self, error)) if on_failure else None,
            max_consecutive_failures=max_consecutive_failures,
        )
        controller.start(configuration, handle=self.handle)

    def status(self) -> FeedStatus:
        return self._controller.status(self.handle)

    def pause(self) -> None:
        self._controller.pause(self.handle)

    def resume(self) -> FeedStatus:
        return self._controller.resume(self.handle)

    def stop(self) -> FeedStatus:
        return self._controller.stop(self.handle)

    def set_lifetime_seconds(self, seconds: float) -> None:
        self._controller.set_lifetime(self.handle, seconds)

    def remaining_lifetime(self) -> float:
        return self._controller.remaining_lifetime(self.handle)

    def events(self) -> FeedEventStream:
        return self._controller.events(self.handle)

    def __repr__(self) -> str:
        return f"AccessFeed({self.handle}, {self.status().value})"

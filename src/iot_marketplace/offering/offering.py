from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from iot_marketplace.exceptions import (
    AccessToNonActivatedOfferingError,
    AccessToNonSubscribedOfferingError,
    HttpError,
    MarketplaceError,
)
from iot_marketplace.feed.access_feed import AccessFeed
from iot_marketplace.offering.description import SubscribableOfferingDescription
from iot_marketplace.offering.parameters import AccessParameters
from iot_marketplace.offering.response import AccessResponse

if TYPE_CHECKING:
    from iot_marketplace.client.consumer import Consumer


class Offering:
    """A subscribed offering, ready to be accessed"""

    def __init__(
        self,
        consumer: "Consumer",
        description: SubscribableOfferingDescription,
        subscription_id: str,
        access_token: str,
    ):
        self.consumer = consumer
        self.description = description
        self.subscription_id = subscription_id
        self.access_token = access_token
        self.subscribed = True
        self._feeds: List[AccessFeed] = []

    def _check_accessible(self) -> None:
        if not self.subscribed:
            raise AccessToNonSubscribedOfferingError(f"Offering {self.description.id} is not subscribed")
        if not self.description.is_active():
            raise AccessToNonActivatedOfferingError(f"Offering {self.description.id} is not activated")

    def access_one_time(self, parameters: Optional[AccessParameters] = None) -> AccessResponse:
        self._check_accessible()
        if not self.description.endpoints:
            raise MarketplaceError(f"Offering {self.description.id} has no endpoint")

        parameters = parameters if parameters is not None else AccessParameters()
        endpoint = self.description.endpoints[0]
        method = endpoint.endpoint_type.upper().replace("HTTP_", "") or "GET"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        if method == "GET":
            resp = self.consumer.request(method, endpoint.uri, params=parameters.flatten(), headers=headers)
        else:
            resp = self.consumer.request(method, endpoint.uri, json=parameters.to_dict(), headers=headers)
        logging.info("Offering access %s %s -> %s", method, endpoint.uri, resp.status_code)

        if resp.status_code >= 400:
            raise HttpError(endpoint.uri, resp.status_code, resp.text)

        return AccessResponse(resp.text, resp.status_code, self.description.output_types())

    def access_continuous(
        self,
        parameters: AccessParameters,
        lifetime_seconds: float,
        on_success: Optional[Callable[[AccessFeed, AccessResponse], None]] = None,
        on_failure: Optional[Callable[[AccessFeed, BaseException], None]] = None,
        interval_seconds: Optional[float] = None,
        max_consecutive_failures: Optional[int] = None,
    ) -> AccessFeed:
        """Poll the offering every interval until the lifetime elapses or the feed is stopped"""
        self._check_accessible()
        feed = AccessFeed(
            self.consumer.feeds,
            fetch=self.access_one_time,
            parameters=parameters,
            lifetime_seconds=lifetime_seconds,
            interval_seconds=(
                interval_seconds if interval_seconds is not None else self.consumer.settings.feed_interval_seconds
            ),
            on_success=on_success,
            on_failure=on_failure,
            max_consecutive_failures=max_consecutive_failures,
        )
        self._feeds.append(feed)
        return feed

    @property
    def feeds(self) -> List[AccessFeed]:
        return list(self._feeds)

    def stop_feeds(self) -> None:
        for feed in self._feeds:
            feed.stop()

    def unsubscribe(self) -> None:
        self.consumer.unsubscribe(self)

    def __repr__(self) -> str:
        state = "subscribed" if self.subscribed else "unsubscribed"
        return f"Offering({self.description.id}, {state})"

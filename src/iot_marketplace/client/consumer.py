from __future__ import annotations

import logging
from typing import Dict, List, Optional

import requests

from iot_marketplace.client.auth import is_token_expired, request_access_token, token_expiry
from iot_marketplace.client.proxy import ProxySettings
from iot_marketplace.config.settings import Settings, get_settings
from iot_marketplace.exceptions import HttpError, MarketplaceError, NotAuthenticatedError
from iot_marketplace.feed.controller import FeedController
from iot_marketplace.offering.description import SubscribableOfferingDescription
from iot_marketplace.offering.offering import Offering
from iot_marketplace.offering.query import OfferingQuery


ADD_OFFERING_QUERY = """
mutation addOfferingQuery($input: AddOfferingQuery!) {
  addOfferingQuery(input: $input) { id name }
}
"""

MATCHING_OFFERINGS = """
query matchingOfferings($queryId: String!) {
  matchingOfferings(queryId: $queryId) {
    id
    name
    rdfAnnotation { uri }
    endpoints { uri endpointType accessInterfaceType }
    outputs { name rdfAnnotation { uri } }
    license
    price { pricingModel money { amount currency } }
    activation { status expirationTime }
    provider { id }
    spatialExtent { city }
  }
}
"""

SUBSCRIBE_QUERY_TO_OFFERING = """
mutation subscribeQueryToOffering($input: SubscribeQueryToOffering!) {
  subscribeQueryToOffering(input: $input) { id accessToken }
}
"""

UNSUBSCRIBE_QUERY_FROM_OFFERING = """
mutation unsubscribeQueryFromOffering($input: UnsubscribeQueryFromOffering!) {
  unsubscribeQueryFromOffering(input: $input) { id }
}
"""


class Consumer:
    """Marketplace consumer session: authentication, discovery and subscriptions"""

    def __init__(
        self,
        consumer_id: str,
        marketplace_uri: Optional[str] = None,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        feed_controller: Optional[FeedController] = None,
    ):
        self.settings = settings or get_settings()
        self.consumer_id = consumer_id
        self.marketplace_uri = (marketplace_uri or self.settings.marketplace_uri).rstrip("/")
        self.session = session or requests.Session()
        self.feeds = feed_controller or FeedController()
        self.proxy = ProxySettings()
        self.access_token: Optional[str] = None
        self._secret: Optional[str] = None
        self._token_expires_at: Optional[float] = None
        self._offerings: List[Offering] = []
        self._terminated = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def set_proxy(self, host: str, port: int) -> None:
        self.proxy = self.proxy.with_proxy(host, port)
        logging.info("Using proxy %s:%s", host, port)

    def add_proxy_bypass(self, host: str) -> None:
        self.proxy = self.proxy.with_bypass(host)
        logging.info("Bypassing proxy for %s", host)

    def authenticate(self, secret: str) -> None:
        """Authenticate the consumer on the marketplace"""
        self.access_token = request_access_token(
            self.session,
            self.marketplace_uri,
            self.consumer_id,
            secret,
            proxies=self.proxy.proxies_for(self.marketplace_uri),
            timeout=self.settings.request_timeout,
        )
        self._secret = secret
        self._token_expires_at = token_expiry(self.access_token)
        self._terminated = False
        logging.info("✓ Authenticated %s on %s", self.consumer_id, self.marketplace_uri)

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """HTTP call through the consumer session, honoring proxy settings"""
        kwargs.setdefault("proxies", self.proxy.proxies_for(url))
        kwargs.setdefault("timeout", self.settings.request_timeout)
        return self.session.request(method, url, **kwargs)

    def _ensure_authenticated(self) -> str:
        if self.access_token is None:
            raise NotAuthenticatedError("Consumer is not authenticated. Call authenticate() first.")
        if is_token_expired(self._token_expires_at) and self._secret:
            logging.info("Marketplace token expired; re-authenticating %s", self.consumer_id)
            self.authenticate(self._secret)
        return self.access_token

    def _graphql(self, query: str, variables: Dict) -> Dict:
        token = self._ensure_authenticated()
        url = f"{self.marketplace_uri}/graphql"
        resp = self.request(
            "POST",
            url,
            json={"query": query, "variables": variables},
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code >= 400:
            raise HttpError(url, resp.status_code, resp.text)

        payload = resp.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors)
            raise MarketplaceError(f"Marketplace request failed: {messages}")
        return payload.get("data") or {}

    # ------------------------------------------------------------------
    # Offerings
    # ------------------------------------------------------------------
    def discover(self, query: OfferingQuery) -> List[SubscribableOfferingDescription]:
        """Register the query on the marketplace and return the matching offerings"""
        query.validate()
        query_id = query.query_id(self.consumer_id)

        self._graphql(ADD_OFFERING_QUERY, {"input": query.to_graphql_input(self.consumer_id)})
        data = self._graphql(MATCHING_OFFERINGS, {"queryId": query_id})

        descriptions = [
            SubscribableOfferingDescription.from_json(item, query_id=query_id)
            for item in data.get("matchingOfferings") or []
        ]
        logging.info("Query %s matched %d offering(s)", query_id, len(descriptions))
        return descriptions

    def subscribe(self, description: SubscribableOfferingDescription) -> Offering:
        subscription_id = f"{description.query_id}=={description.id}"
        data = self._graphql(
            SUBSCRIBE_QUERY_TO_OFFERING,
            {"input": {"id": subscription_id, "queryId": description.query_id, "offeringId": description.id}},
        )
        subscription = data.get("subscribeQueryToOffering") or {}
        access_token = subscription.get("accessToken")
        if not access_token:
            raise MarketplaceError(f"No access token returned for subscription to {description.id}")

        offering = Offering(self, description, subscription.get("id", subscription_id), access_token)
        self._offerings.append(offering)
        logging.info("Subscribed to offering %s", description.id)
        return offering

    def unsubscribe(self, offering: Offering) -> None:
        offering.stop_feeds()
        if offering.subscribed:
            self._graphql(
                UNSUBSCRIBE_QUERY_FROM_OFFERING,
                {"input": {"id": offering.subscription_id}},
            )
            offering.subscribed = False
            logging.info("Unsubscribed from offering %s", offering.description.id)
        if offering in self._offerings:
            self._offerings.remove(offering)

    @property
    def offerings(self) -> List[Offering]:
        return list(self._offerings)

    def terminate(self) -> None:
        """Stop all feeds, release all subscriptions and close the session"""
        if self._terminated:
            return

        self.feeds.shutdown()
        for offering in list(self._offerings):
            try:
                self.unsubscribe(offering)
            except (MarketplaceError, requests.RequestException) as e:
                logging.warning("Failed to unsubscribe from %s: %s", offering.description.id, e)
                continue

        self.session.close()
        self.access_token = None
        self._terminated = True
        logging.info("Terminated consumer session %s", self.consumer_id)

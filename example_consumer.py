# example_consumer.py
"""
Example consumer: discover a parking offering, access it once, map the
results, then run a continuous feed and tear everything down.

Configuration comes from the environment (see .env.example).
"""
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

from iot_marketplace.client.consumer import Consumer
from iot_marketplace.config.settings import get_settings
from iot_marketplace.offering.description import log_offering_descriptions
from iot_marketplace.offering.parameters import AccessParameters
from iot_marketplace.offering.query import (
    Information,
    LicenseType,
    OfferingQuery,
    Price,
    PricingModel,
    RegionFilter,
)
from iot_marketplace.offering.response import OutputMapping
from iot_marketplace.offering.selector import OfferingSelector

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SECOND = 1


# -----------------------------
# Result types
# -----------------------------
@dataclass
class ParkingResult:
    """Mapped by the semantic types the offering declares"""

    coordinates: Optional[dict] = field(default=None, metadata={"rdf_type": "schema:geoCoordinates"})
    distance: Optional[float] = field(default=None, metadata={"rdf_type": "datex:distanceFromParkingSpace"})
    status: Optional[str] = field(default=None, metadata={"rdf_type": "datex:parkingSpaceStatus"})


@dataclass
class MyParkingResult:
    myCoordinate: Optional[dict] = None
    myDistance: Optional[float] = None
    myStatus: Optional[str] = None


@dataclass
class Coordinates:
    latitude: float = 0.0
    longitude: float = 0.0


@dataclass
class AlternativeParking:
    coordinates: Coordinates = field(default_factory=Coordinates)
    meters: Optional[float] = None


def main():
    settings = get_settings()

    # Initialize consumer with consumer ID and marketplace URL
    consumer = Consumer(settings.consumer_id, settings.marketplace_uri, settings=settings)

    if settings.proxy_host:
        consumer.set_proxy(settings.proxy_host, settings.proxy_port)
    for host in settings.proxy_bypass:
        consumer.add_proxy_bypass(host)

    if not settings.consumer_secret:
        logger.error("CONSUMER_SECRET is not set")
        return 1

    consumer.authenticate(settings.consumer_secret)

    query = OfferingQuery(
        local_id="ParkingQuery",
        information=Information("Parking Query", "bigiot:Parking"),
        region=RegionFilter("Barcelona"),
        pricing_model=PricingModel.PER_ACCESS,
        max_price=Price.euros(0.002),
        license_type=LicenseType.OPEN_DATA_LICENSE,
    )

    descriptions = log_offering_descriptions(consumer.discover(query))
    selector = OfferingSelector(only_localhost=True, cheapest=True, most_permissive=True)
    offering_description = selector.select(descriptions)
    if offering_description is None:
        logger.error("Couldn't find any offering. Are you sure that one is registered? It could be expired meanwhile")
        consumer.terminate()
        return 1

    offering = consumer.subscribe(offering_description)

    access_parameters = AccessParameters({
        "areaSpecification": {
            "geoCoordinates": {"latitude": 50.22, "longitude": 8.11},
            "radius": 777,
        }
    })

    response = offering.access_one_time(access_parameters)
    if "error" in response.body:
        raise RuntimeError(response.body)
    logger.info("One time offering access: %d elements received.", response.size())

    # Map by declared semantic types
    parking_result = response.map(ParkingResult)
    # Map semantic types onto your own field names
    parking_result2 = response.map(MyParkingResult, OutputMapping(type_mappings={
        "schema:geoCoordinates": "myCoordinate",
        "datex:distanceFromParkingSpace": "myDistance",
        "datex:parkingSpaceStatus": "myStatus",
    }))
    # Or cherry-pick fields by name
    parking_result3 = response.map(AlternativeParking, OutputMapping(name_mappings={
        "geoCoordinates.latitude": "coordinates.latitude",
        "geoCoordinates.longitude": "coordinates.longitude",
        "distance": "meters",
    }))
    logger.info(
        "Mapped %d/%d/%d parking results", len(parking_result), len(parking_result2), len(parking_result3)
    )

    time.sleep(5 * SECOND)

    feed_lifetime = 60 * 60 * SECOND

    access_feed = offering.access_continuous(
        access_parameters,
        feed_lifetime,
        on_success=lambda f, r: logger.info("Incoming feed data: %d elements received.", r.size()),
        on_failure=lambda f, e: logger.info("Feed operation failed: %s", e),
    )

    time.sleep(23 * SECOND)

    access_feed.pause()
    logger.info("Feed status: %s", access_feed.status().value)

    time.sleep(10 * SECOND)

    access_feed.resume()

    time.sleep(10 * SECOND)

    # Setting a new lifetime for the feed
    access_feed.set_lifetime_seconds(5000)

    time.sleep(10 * SECOND)

    access_feed.stop()

    offering.unsubscribe()

    # Terminate consumer session (unsubscribe from marketplace)
    consumer.terminate()
    return 0


if __name__ == "__main__":
    sys.exit(main())

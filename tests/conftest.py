"""Shared fixtures for the marketplace consumer tests."""
from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from iot_marketplace.config.settings import Settings


@pytest.fixture
def settings():
    return Settings(
        marketplace_uri="https://market.example.org",
        consumer_id="Test_Consumer",
        consumer_secret="secret",
        proxy_host="",
        proxy_port=3128,
        proxy_bypass=[],
        request_timeout=5,
        feed_interval_seconds=0.05,
    )


@pytest.fixture
def make_response():
    """Factory for requests.Response stand-ins."""
    def _make(status_code=200, text=None, json_data=None):
        resp = MagicMock()
        resp.status_code = status_code
        if json_data is not None:
            resp.text = json.dumps(json_data)
            resp.json.return_value = json_data
        else:
            resp.text = text or ""
            resp.json.side_effect = ValueError("not json")
        return resp
    return _make


@pytest.fixture
def offering_json():
    return {
        "id": "Provider-Parking_Offering",
        "name": "Parking Offering",
        "rdfAnnotation": {"uri": "bigiot:Parking"},
        "endpoints": [
            {"uri": "https://provider.example.org/parking", "endpointType": "HTTP_GET", "accessInterfaceType": "BIGIOT_LIB"}
        ],
        "outputs": [
            {"name": "geoCoordinates", "rdfAnnotation": {"uri": "schema:geoCoordinates"}},
            {"name": "distance", "rdfAnnotation": {"uri": "datex:distanceFromParkingSpace"}},
            {"name": "status", "rdfAnnotation": {"uri": "datex:parkingSpaceStatus"}},
        ],
        "license": "OPEN_DATA_LICENSE",
        "price": {"pricingModel": "PER_ACCESS", "money": {"amount": 0.001, "currency": "EUR"}},
        "activation": {"status": True, "expirationTime": None},
        "provider": {"id": "Provider"},
        "spatialExtent": {"city": "Barcelona"},
    }

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import List

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    marketplace_uri: str
    consumer_id: str
    consumer_secret: str

    proxy_host: str
    proxy_port: int
    proxy_bypass: List[str]

    request_timeout: float
    feed_interval_seconds: float


_settings: Settings | None = None


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def get_settings() -> Settings:
    global _settings
    if _settings is not None:
        return _settings

    load_dotenv()

    bypass_csv = _env("PROXY_BYPASS")
    proxy_bypass = [h.strip() for h in bypass_csv.split(",") if h.strip()]

    _settings = Settings(
        marketplace_uri=_env("MARKETPLACE_URI", "https://market.big-iot.org").rstrip("/"),
        consumer_id=_env("CONSUMER_ID", "Null_Island-Parking_App"),
        consumer_secret=_env("CONSUMER_SECRET"),
        proxy_host=_env("PROXY_HOST"),
        proxy_port=int(_env("PROXY_PORT", "3128")),
        proxy_bypass=proxy_bypass,
        request_timeout=float(_env("REQUEST_TIMEOUT", "30")),
        feed_interval_seconds=float(_env("FEED_INTERVAL_SECONDS", "10")),
    )

    return _settings

"""
SpotFeed | Runtime configuration.

All settings come from the environment (optionally a ``.env`` file) and are
bound once into an immutable ``MarketConfig`` that is handed to the fetch
client and the refresh scheduler at construction.
"""

from __future__ import annotations

import os
from datetime import timedelta

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "https://web-api.tp.entsoe.eu/api"
DEFAULT_MARKET_DOMAIN = "10YNL----------L"   # EIC code, Netherlands bidding zone
DEFAULT_HOURLY_RESOLUTION = "PT60M"
DEFAULT_REFRESH_SECONDS = 3600.0
DEFAULT_SAMPLING_MINUTES = 60
DEFAULT_REQUEST_TIMEOUT = 30.0


class MarketConfig(BaseModel):
    """
    Settings for one ENTSO-E day-ahead price feed.

    Parameters
    ----------
    api_url:
        ENTSO-E Transparency Platform REST endpoint.
    security_token:
        Personal API token, sent as the ``securityToken`` query parameter.
    market_domain:
        EIC code used for both ``in_Domain`` and ``out_Domain``.
    hourly_resolution_tag:
        Resolution tag that means 1-hour points; any other tag is 15 minutes.
    refresh_interval_seconds:
        Pause between the end of one fetch cycle and the start of the next.
    sampling_interval_minutes:
        Spacing of the gap-filled series for the first day of the window.
    request_timeout_seconds:
        Per-request HTTP timeout.
    """

    model_config = ConfigDict(frozen=True)

    api_url: str = DEFAULT_API_URL
    security_token: str = ""
    market_domain: str = DEFAULT_MARKET_DOMAIN
    hourly_resolution_tag: str = DEFAULT_HOURLY_RESOLUTION
    refresh_interval_seconds: float = Field(default=DEFAULT_REFRESH_SECONDS, gt=0)
    sampling_interval_minutes: int = Field(default=DEFAULT_SAMPLING_MINUTES, gt=0)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    @property
    def sampling_interval(self) -> timedelta:
        return timedelta(minutes=self.sampling_interval_minutes)

    @classmethod
    def from_env(cls) -> "MarketConfig":
        """Build a config from ``ENTSOE_*`` / ``PRICE_*`` environment variables."""
        config = cls(
            api_url=os.getenv("ENTSOE_API_URL", DEFAULT_API_URL),
            security_token=os.getenv("ENTSOE_SECURITY_TOKEN", ""),
            market_domain=os.getenv("ENTSOE_MARKET_DOMAIN", DEFAULT_MARKET_DOMAIN),
            hourly_resolution_tag=os.getenv("ENTSOE_HOURLY_RESOLUTION", DEFAULT_HOURLY_RESOLUTION),
            refresh_interval_seconds=os.getenv("PRICE_REFRESH_SECONDS", DEFAULT_REFRESH_SECONDS),
            sampling_interval_minutes=os.getenv("PRICE_SAMPLING_MINUTES", DEFAULT_SAMPLING_MINUTES),
            request_timeout_seconds=os.getenv("ENTSOE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        )
        if not config.security_token:
            logger.warning("ENTSOE_SECURITY_TOKEN is not set; ENTSO-E will reject price requests.")
        logger.debug(
            "MarketConfig loaded | domain={} refresh={}s sampling={}min",
            config.market_domain,
            config.refresh_interval_seconds,
            config.sampling_interval_minutes,
        )
        return config

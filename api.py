"""
SpotFeed | FastAPI Server
Serves the latest normalized ENTSO-E day-ahead prices while a background
task keeps them fresh.

Run:  uvicorn api:app --port 8000
Docs: http://localhost:8000/docs
"""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel

from prices.config import MarketConfig
from prices.entsoe_client import EntsoeClient
from prices.scheduler import RefreshScheduler
from prices.store import PriceSeries, PriceStore

load_dotenv()

logger.remove()
logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))

# ---------------------------------------------------------------------------
# Application state: one store, one shared httpx client, one refresh loop
# ---------------------------------------------------------------------------

_store = PriceStore()
_http_client: Optional[httpx.AsyncClient] = None
_scheduler: Optional[RefreshScheduler] = None
_config: Optional[MarketConfig] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the price refresh loop for the lifetime of the process."""
    global _http_client, _scheduler, _config
    _config = MarketConfig.from_env()
    _http_client = httpx.AsyncClient(timeout=_config.request_timeout_seconds)
    _scheduler = RefreshScheduler(EntsoeClient(_config, _http_client), _store, _config)
    _scheduler.start()
    logger.info("SpotFeed started.")
    yield
    await _scheduler.stop()
    await _http_client.aclose()
    logger.info("SpotFeed stopped.")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SpotFeed API",
    description=(
        "Day-ahead electricity prices from the ENTSO-E Transparency Platform, "
        "gap-filled and refreshed in the background."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PricesMeta(BaseModel):
    """Metadata block of the /prices response."""
    market_domain:  Optional[str]
    window_start:   Optional[str]   # UTC ISO, None before the first refresh
    window_end:     Optional[str]
    published_at:   Optional[str]
    version:        int             # 0 before the first refresh
    units:          str = "EUR/kWh"
    timezone:       str = "UTC"


class PriceRecord(BaseModel):
    timestamp: str   # interval start, UTC ISO
    price:     float


class PricesSummary(BaseModel):
    total_points: int
    avg_price:    Optional[float]
    min_price:    Optional[float]
    max_price:    Optional[float]
    cheapest_at:  Optional[str]
    priciest_at:  Optional[str]


class PricesResponse(BaseModel):
    meta:    PricesMeta
    data:    list[PriceRecord]
    summary: PricesSummary


class HealthResponse(BaseModel):
    status:          str
    timestamp:       str
    scheduler_state: str
    cycles:          int
    failures:        int
    last_success_at: Optional[str]
    last_error:      Optional[str]


class RefreshResponse(BaseModel):
    accepted:        bool
    scheduler_state: str


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _build_summary(series: PriceSeries) -> PricesSummary:
    if not series:
        return PricesSummary(
            total_points=0, avg_price=None, min_price=None, max_price=None,
            cheapest_at=None, priciest_at=None,
        )
    cheapest = min(series, key=series.__getitem__)
    priciest = max(series, key=series.__getitem__)
    return PricesSummary(
        total_points=len(series),
        avg_price=round(sum(series.values()) / len(series), 6),
        min_price=series[cheapest],
        max_price=series[priciest],
        cheapest_at=cheapest.isoformat(),
        priciest_at=priciest.isoformat(),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Meta"])
async def health():
    """Service health and refresh loop status."""
    scheduler = _scheduler
    return HealthResponse(
        status="ok" if scheduler is not None and scheduler.is_running else "degraded",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        scheduler_state=scheduler.state.value if scheduler else "stopped",
        cycles=scheduler.cycles if scheduler else 0,
        failures=scheduler.failures if scheduler else 0,
        last_success_at=_iso(scheduler.last_success_at) if scheduler else None,
        last_error=scheduler.last_error if scheduler else None,
    )


@app.get("/prices", response_model=PricesResponse, tags=["Prices"])
async def get_prices():
    """
    Return the latest day-ahead prices for today and tomorrow (UTC).

    Data is ordered by timestamp.  Before the first successful refresh the
    data list is empty; a failed refresh leaves the previous series in place.
    """
    publication = _store.latest()
    series = publication.series if publication else _store.snapshot()
    logger.debug("GET /prices | {!r}", series)

    window = publication.window if publication else None
    return PricesResponse(
        meta=PricesMeta(
            market_domain=_config.market_domain if _config else None,
            window_start=_iso(window.start) if window else None,
            window_end=_iso(window.end) if window else None,
            published_at=_iso(publication.published_at) if publication else None,
            version=publication.version if publication else 0,
        ),
        data=[PriceRecord(timestamp=ts.isoformat(), price=price) for ts, price in series.items()],
        summary=_build_summary(series),
    )


@app.post("/prices/refresh", response_model=RefreshResponse, status_code=202, tags=["Prices"])
async def refresh_prices():
    """Wake the refresh loop so it fetches now instead of at its next tick."""
    scheduler = _scheduler
    accepted = scheduler.trigger() if scheduler else False
    logger.info("POST /prices/refresh | accepted={}", accepted)
    return RefreshResponse(
        accepted=accepted,
        scheduler_state=scheduler.state.value if scheduler else "stopped",
    )

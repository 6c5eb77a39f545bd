"""
SpotFeed | In-memory Price Store

Holds the latest normalized price series for concurrent readers.

A publish builds a brand-new immutable ``PriceSeries`` and then swaps one
reference; readers just load that reference and never take a lock.  The
writer lock only serialises publishes against each other and is never held
across network I/O.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterator, Optional

import pandas as pd
from loguru import logger

from prices.models import FetchWindow


class PriceSeries(Mapping):
    """Read-only, time-ascending mapping of timestamp → price."""

    __slots__ = ("_prices",)

    def __init__(self, prices: Optional[Mapping[datetime, float]] = None) -> None:
        ordered = dict(sorted((prices or {}).items()))
        self._prices = MappingProxyType(ordered)

    def __getitem__(self, key: datetime) -> float:
        return self._prices[key]

    def __iter__(self) -> Iterator[datetime]:
        return iter(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self) -> str:
        if not self._prices:
            return "PriceSeries(empty)"
        first, last = self.first_timestamp, self.last_timestamp
        return f"PriceSeries({len(self)} points, {first.isoformat()} to {last.isoformat()})"

    @property
    def first_timestamp(self) -> Optional[datetime]:
        return next(iter(self._prices), None)

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return next(reversed(self._prices), None) if self._prices else None

    def to_frame(self) -> pd.DataFrame:
        """Return the series as a DataFrame with ``timestamp`` and ``price`` columns."""
        if not self._prices:
            return pd.DataFrame(columns=["timestamp", "price"])
        return pd.DataFrame(
            {"timestamp": list(self._prices.keys()), "price": list(self._prices.values())}
        )


EMPTY_SERIES = PriceSeries()


@dataclass(frozen=True)
class Publication:
    """One successful refresh as seen by readers."""

    series: PriceSeries
    window: Optional[FetchWindow]
    published_at: datetime
    version: int


class PriceStore:
    """
    Write-once-per-cycle, read-many holder of the current price series.

    ``snapshot()`` never blocks and never raises; before the first publish it
    returns an empty series.
    """

    def __init__(self) -> None:
        self._current: Optional[Publication] = None
        self._write_lock = threading.Lock()

    def publish(
        self,
        prices: Mapping[datetime, float],
        window: Optional[FetchWindow] = None,
    ) -> Publication:
        """Replace the current series wholesale with *prices*."""
        series = prices if isinstance(prices, PriceSeries) else PriceSeries(prices)
        with self._write_lock:
            version = self._current.version + 1 if self._current else 1
            publication = Publication(
                series=series,
                window=window,
                published_at=datetime.now(tz=timezone.utc),
                version=version,
            )
            self._current = publication
        logger.info("Published price series v{} | {!r}", version, series)
        return publication

    def snapshot(self) -> PriceSeries:
        current = self._current
        return current.series if current is not None else EMPTY_SERIES

    def latest(self) -> Optional[Publication]:
        """The current publication with its metadata, or None before the first publish."""
        return self._current

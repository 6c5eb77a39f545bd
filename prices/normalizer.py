"""
SpotFeed | Gap-Filling Normalizer
Turns a sparse set of Observations into a complete price series.

Method
------
For every expected timestamp t in [window.start, window.start + 1 day):

    observed            →  keep
    prior and following →  mean(prior, following)
    prior only          →  prior        (forward-fill)
    following only      →  following    (back-fill)
    neither             →  left out, reported as UnresolvedGap

"prior" / "following" are the nearest observations strictly before / after
t anywhere in the payload, not just inside the first day.  The second day
of the window is carried through as received.

The lookup is done on a time-sorted pandas index (ffill + bfill over the
union of observed and expected timestamps), so the result does not depend
on the order observations arrive in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

import pandas as pd
from loguru import logger

from prices.errors import UnresolvedGap
from prices.models import FetchWindow, Observation


@dataclass
class GapFillReport:
    """Normalized prices plus what was done to produce them."""

    prices: dict[datetime, float]
    filled: list[datetime] = field(default_factory=list)
    unresolved: list[UnresolvedGap] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unresolved


def _observed_series(observations: Iterable[Observation]) -> pd.Series:
    # Dict build keeps the last value for a repeated timestamp
    latest = {obs.timestamp: obs.price for obs in observations}
    index = pd.DatetimeIndex(list(latest.keys()), tz="UTC")
    return pd.Series(list(latest.values()), index=index, dtype="float64").sort_index()


def expected_timestamps(window: FetchWindow, interval: timedelta) -> pd.DatetimeIndex:
    """Every timestamp the first day of *window* must cover at *interval*."""
    return pd.date_range(
        start=window.start,
        end=window.first_day_end,
        freq=interval,
        inclusive="left",
        tz="UTC" if window.start.tzinfo is None else None,
    )


def fill_gaps(
    observations: Iterable[Observation],
    window: FetchWindow,
    interval: timedelta = timedelta(hours=1),
) -> GapFillReport:
    """
    Complete the first day of *window* at *interval*.

    Parameters
    ----------
    observations:
        Raw parser output, in any order; later duplicates win.
    window:
        The fetch window the observations were requested for.
    interval:
        Sampling interval of the guaranteed-complete range.

    Returns
    -------
    GapFillReport
        ``prices`` is time-ascending and holds every observation plus one
        filled value per resolvable gap.
    """
    if interval <= timedelta(0):
        raise ValueError(f"interval must be positive, got {interval}")

    observed = _observed_series(observations)
    expected = expected_timestamps(window, interval)

    grid = observed.index.union(expected)
    aligned = observed.reindex(grid)

    # Row mean skips NaN: both neighbours → average, one → that one, none → NaN
    neighbours = pd.concat([aligned.ffill(), aligned.bfill()], axis=1)
    candidates = neighbours.mean(axis=1)

    missing = expected[~expected.isin(observed.index)]
    result = observed.copy()
    report = GapFillReport(prices={})

    for ts in missing:
        value = candidates[ts]
        stamp = ts.to_pydatetime()
        if pd.isna(value):
            gap = UnresolvedGap(stamp)
            logger.warning("Price gap unresolved: {}", gap)
            report.unresolved.append(gap)
            continue
        logger.info("Price missing for {}; filled with {:.5f}", stamp.isoformat(), value)
        result[ts] = float(value)
        report.filled.append(stamp)

    result = result.sort_index()
    report.prices = {ts.to_pydatetime(): float(price) for ts, price in result.items()}

    if report.filled or report.unresolved:
        logger.info(
            "Normalized {} | {} observed, {} filled, {} unresolved",
            window,
            len(observed),
            len(report.filled),
            len(report.unresolved),
        )
    return report

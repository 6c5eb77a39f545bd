from __future__ import annotations

import threading

import pytest

from conftest import utc
from prices.models import FetchWindow
from prices.store import PriceSeries, PriceStore


def test_snapshot_is_empty_before_first_publish() -> None:
    store = PriceStore()

    assert len(store.snapshot()) == 0
    assert store.latest() is None


def test_series_iterates_in_time_order() -> None:
    series = PriceSeries({utc(2024, 3, 1, 2): 0.3, utc(2024, 3, 1, 0): 0.1, utc(2024, 3, 1, 1): 0.2})

    assert list(series) == [utc(2024, 3, 1, 0), utc(2024, 3, 1, 1), utc(2024, 3, 1, 2)]
    assert series.first_timestamp == utc(2024, 3, 1, 0)
    assert series.last_timestamp == utc(2024, 3, 1, 2)
    assert list(series.to_frame()["price"]) == [0.1, 0.2, 0.3]


def test_series_is_read_only() -> None:
    series = PriceSeries({utc(2024, 3, 1): 0.1})

    with pytest.raises(TypeError):
        series[utc(2024, 3, 2)] = 0.2  # type: ignore[index]


def test_snapshot_does_not_change_after_source_mutation() -> None:
    store = PriceStore()
    prices = {utc(2024, 3, 1): 0.1}

    store.publish(prices)
    prices[utc(2024, 3, 2)] = 0.2

    assert dict(store.snapshot()) == {utc(2024, 3, 1): 0.1}


def test_republishing_same_series_is_idempotent() -> None:
    store = PriceStore()
    prices = {utc(2024, 3, 1, h): h / 10 for h in range(24)}

    store.publish(prices)
    first = store.snapshot()
    store.publish(prices)

    assert store.snapshot() == first
    assert store.latest().version == 2


def test_publish_replaces_wholesale() -> None:
    store = PriceStore()
    window = FetchWindow.for_instant(utc(2024, 3, 2, 8))

    store.publish({utc(2024, 3, 1, 0): 0.1, utc(2024, 3, 1, 1): 0.2})
    store.publish({utc(2024, 3, 2, 0): 0.3}, window)

    assert dict(store.snapshot()) == {utc(2024, 3, 2, 0): 0.3}
    assert store.latest().window == window


def test_concurrent_readers_never_see_a_torn_series() -> None:
    store = PriceStore()
    series_a = {utc(2024, 3, 1, h): 1.0 for h in range(96)}
    series_b = {utc(2024, 3, 2, h % 24, (h // 24) * 15): 2.0 for h in range(96)}
    store.publish(series_a)

    stop = threading.Event()
    torn: list[dict] = []

    def reader() -> None:
        while not stop.is_set():
            seen = dict(store.snapshot())
            if seen != series_a and seen != series_b:
                torn.append(seen)

    readers = [threading.Thread(target=reader) for _ in range(8)]
    for t in readers:
        t.start()
    for i in range(300):
        store.publish(series_b if i % 2 == 0 else series_a)
    stop.set()
    for t in readers:
        t.join()

    assert torn == []
    assert store.latest().version == 301

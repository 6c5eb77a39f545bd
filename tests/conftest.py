from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from prices.config import MarketConfig

NS_73 = "urn:iec62325.351:tc57wg16:451-3:publicationdocument:7:3"
ACK_NS = "urn:iec62325.351:tc57wg16:451-1:acknowledgementdocument:7:0"


def point_xml(position: Optional[int], amount: Optional[str]) -> str:
    parts = []
    if position is not None:
        parts.append(f"<position>{position}</position>")
    if amount is not None:
        parts.append(f"<price.amount>{amount}</price.amount>")
    return f"<Point>{''.join(parts)}</Point>"


def series_xml(
    start: Optional[str],
    resolution: Optional[str],
    points: list[tuple[Optional[int], Optional[str]]],
    with_period: bool = True,
) -> str:
    if not with_period:
        return "<TimeSeries><mRID>1</mRID></TimeSeries>"
    interval = f"<timeInterval><start>{start}</start><end>2024-03-03T00:00Z</end></timeInterval>" if start else ""
    res = f"<resolution>{resolution}</resolution>" if resolution else ""
    body = "".join(point_xml(pos, amount) for pos, amount in points)
    return f"<TimeSeries><mRID>1</mRID><Period>{interval}{res}{body}</Period></TimeSeries>"


def document_xml(*series: str, namespace: str = NS_73) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<Publication_MarketDocument xmlns="{namespace}">'
        "<mRID>doc</mRID><type>A44</type>"
        f"{''.join(series)}"
        "</Publication_MarketDocument>"
    )


def acknowledgement_xml(reason: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<Acknowledgement_MarketDocument xmlns="{ACK_NS}">'
        f"<Reason><code>999</code><text>{reason}</text></Reason>"
        "</Acknowledgement_MarketDocument>"
    )


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def config() -> MarketConfig:
    return MarketConfig(
        api_url="https://entsoe.test/api",
        security_token="test-token",
        market_domain="10YNL----------L",
        refresh_interval_seconds=3600,
        request_timeout_seconds=5,
    )

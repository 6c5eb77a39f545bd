"""
SpotFeed | ENTSO-E Publication Document Parser
Decodes an A44 (day-ahead prices) market document into Observations.

Document shape
--------------
  Publication_MarketDocument
    TimeSeries            (one or more)
      Period              (exactly one)
        timeInterval/start
        resolution        PT60M | PT15M
        Point             (one per interval)
          position        1-based offset from the period start
          price.amount    €/MWh

Each point becomes ``timestamp = start + interval × position`` with the
price converted from €/MWh to €/kWh (÷ 1000).

Tolerance
---------
A period or point that is missing a field is skipped with a warning;
only a payload that is not a readable XML document fails the whole parse.
Filling the resulting holes is the normalizer's job.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterator, Optional
from xml.etree.ElementTree import Element, ParseError

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET
from loguru import logger

from prices.errors import EmptyDocument, IncompleteElement, MalformedDocument
from prices.models import Observation

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HOURLY_INTERVAL = timedelta(hours=1)
QUARTER_HOUR_INTERVAL = timedelta(minutes=15)

# Source prices are per MWh; downstream consumers work per kWh
PRICE_SCALE = Decimal(1000)

ACKNOWLEDGEMENT_ROOT = "Acknowledgement_MarketDocument"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _namespace(root: Element) -> str:
    """Return the '{uri}' prefix of the root tag, or '' for un-namespaced XML."""
    if root.tag.startswith("{"):
        return root.tag[: root.tag.index("}") + 1]
    return ""


def _required_text(element: Element, path: str, ns: str, name: str) -> str:
    text = element.findtext(path)
    if text is None or not text.strip():
        raise IncompleteElement(name, path.replace(ns, ""))
    return text.strip()


def _parse_instant(text: str) -> datetime:
    """Parse an ENTSO-E UTC instant such as '2024-03-01T23:00Z'."""
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolution_interval(tag: str, hourly_resolution_tag: str) -> timedelta:
    """Map a resolution tag to its interval: the hourly tag is 1 h, anything else 15 min."""
    return HOURLY_INTERVAL if tag == hourly_resolution_tag else QUARTER_HOUR_INTERVAL


def _read_period(period: Element, ns: str, hourly_resolution_tag: str) -> tuple[datetime, timedelta]:
    start_text = _required_text(period, f"{ns}timeInterval/{ns}start", ns, "Period")
    resolution = _required_text(period, f"{ns}resolution", ns, "Period")
    try:
        start = _parse_instant(start_text)
    except ValueError as exc:
        raise IncompleteElement("Period", "timeInterval/start") from exc
    return start, resolution_interval(resolution, hourly_resolution_tag)


def _read_point(point: Element, ns: str, start: datetime, interval: timedelta) -> Observation:
    position_text = _required_text(point, f"{ns}position", ns, "Point")
    amount_text = _required_text(point, f"{ns}price.amount", ns, "Point")
    try:
        position = int(position_text)
    except ValueError as exc:
        raise IncompleteElement("Point", "position") from exc
    try:
        amount = Decimal(amount_text)
    except InvalidOperation as exc:
        raise IncompleteElement("Point", "price.amount") from exc
    return Observation(
        timestamp=start + interval * position,
        price=float(amount / PRICE_SCALE),
    )


def _iter_series(root: Element, ns: str, hourly_resolution_tag: str) -> Iterator[Observation]:
    for index, series in enumerate(root.iter(f"{ns}TimeSeries"), start=1):
        period = series.find(f"{ns}Period")
        if period is None:
            logger.warning("TimeSeries #{} has no Period; skipped.", index)
            continue

        try:
            start, interval = _read_period(period, ns, hourly_resolution_tag)
        except IncompleteElement as exc:
            logger.warning("TimeSeries #{} skipped: {}", index, exc)
            continue

        logger.debug("TimeSeries #{} | start={} interval={}", index, start.isoformat(), interval)

        for point in period.findall(f"{ns}Point"):
            try:
                yield _read_point(point, ns, start, interval)
            except IncompleteElement as exc:
                logger.warning("TimeSeries #{}: point skipped: {}", index, exc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_document(payload: Optional[str], hourly_resolution_tag: str = "PT60M") -> list[Observation]:
    """
    Parse an A44 market document into a list of Observations.

    Parameters
    ----------
    payload:
        Raw XML body as returned by the ENTSO-E API.
    hourly_resolution_tag:
        The resolution tag meaning 1-hour points (anything else is 15 min).

    Returns
    -------
    list[Observation]
        In document order. Duplicate timestamps across time series are kept
        here; the normalizer resolves them last-write-wins.

    Raises
    ------
    EmptyDocument
        The payload is blank.
    MalformedDocument
        The payload is not well-formed XML, or is an acknowledgement
        document (ENTSO-E's "no matching data" reply).
    """
    if payload is None or not payload.strip():
        raise EmptyDocument("Market document payload is empty.")

    try:
        root = ET.fromstring(payload)
    except (ParseError, DefusedXmlException) as exc:
        raise MalformedDocument(f"Market document could not be parsed: {exc}") from exc

    ns = _namespace(root)
    if root.tag == f"{ns}{ACKNOWLEDGEMENT_ROOT}":
        reason = root.findtext(f"{ns}Reason/{ns}text") or "no reason given"
        raise MalformedDocument(f"ENTSO-E acknowledgement instead of prices: {reason}")

    observations = list(_iter_series(root, ns, hourly_resolution_tag))
    logger.debug("Parsed {} price points.", len(observations))
    return observations

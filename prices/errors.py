"""
SpotFeed | Error taxonomy for the day-ahead price pipeline.

Everything raised inside a fetch cycle derives from ``MarketDataError`` so
the refresh scheduler can tell known failure modes apart from bugs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class MarketDataError(Exception):
    """Base class for all pipeline failures."""


class MalformedDocument(MarketDataError):
    """The payload could not be read as a market document at all."""


class EmptyDocument(MalformedDocument):
    """The payload was blank or contained no price points."""


class IncompleteElement(MarketDataError):
    """A period or point is missing a required sub-element."""

    def __init__(self, element: str, field: str) -> None:
        super().__init__(f"{element} is missing or has an invalid '{field}'")
        self.element = element
        self.field = field


class TransportError(MarketDataError):
    """The HTTP call failed or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class UnresolvedGap:
    """
    Diagnostic for an expected timestamp that could not be filled.

    Recorded (not raised) when neither a prior nor a following observation
    exists anywhere in the fetched payload.
    """

    timestamp: datetime

    def __str__(self) -> str:
        return f"no price information available for {self.timestamp.isoformat()}"

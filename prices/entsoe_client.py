"""
SpotFeed | ENTSO-E Transparency Platform API Client
Fetches the raw day-ahead price document (documentType A44) for one window.

Real API base:  https://web-api.tp.entsoe.eu/api
Auth:           personal ``securityToken`` query parameter

How it works
------------
1. The request covers [window.start, window.end), formatted as
   ``yyyyMMdd0000`` in UTC.
2. The same EIC code is used for ``in_Domain`` and ``out_Domain``.
3. The XML body is returned as-is; parsing happens in ``prices.parser``.

There is deliberately no retry loop here: a failed fetch fails the cycle
and the scheduler tries again on its next tick.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import httpx
from loguru import logger

from prices.config import MarketConfig
from prices.errors import TransportError
from prices.models import FetchWindow

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DAY_AHEAD_DOCUMENT_TYPE = "A44"
PERIOD_FORMAT = "%Y%m%d0000"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt_period(dt: datetime) -> str:
    """Format a window boundary as ENTSO-E expects: 'yyyyMMdd0000'."""
    return dt.strftime(PERIOD_FORMAT)


def build_query(window: FetchWindow, config: MarketConfig) -> dict[str, Any]:
    """Query parameters for an A44 request over *window*."""
    return {
        "documentType": DAY_AHEAD_DOCUMENT_TYPE,
        "in_Domain": config.market_domain,
        "out_Domain": config.market_domain,
        "periodStart": _fmt_period(window.start),
        "periodEnd": _fmt_period(window.end),
        "securityToken": config.security_token,
    }


# ---------------------------------------------------------------------------
# Core client class
# ---------------------------------------------------------------------------


class EntsoeClient:
    """
    Thin async wrapper around the ENTSO-E day-ahead price endpoint.

    Parameters
    ----------
    config:
        Feed settings (URL, token, domain, timeout).
    http_client:
        Shared ``httpx.AsyncClient``.  When omitted the client creates and
        owns one, closed by ``aclose()``.
    """

    def __init__(
        self,
        config: MarketConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def fetch(self, window: FetchWindow) -> str:
        """
        Return the raw XML document for *window*.

        Raises ``TransportError`` on timeouts, connection failures and any
        non-2xx status.
        """
        params = build_query(window, self._config)
        logger.info(
            "Fetching day-ahead prices | domain={} | {} to {}",
            self._config.market_domain,
            params["periodStart"],
            params["periodEnd"],
        )
        try:
            resp = await self._http.get(
                self._config.api_url,
                params=params,
                timeout=self._config.request_timeout_seconds,
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("ENTSO-E request timed out: {}", exc)
            raise TransportError("ENTSO-E API timed out.") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("ENTSO-E returned {} for window {}", status, window)
            raise TransportError(f"ENTSO-E API error {status}.", status_code=status) from exc
        except httpx.HTTPError as exc:
            logger.warning("ENTSO-E request failed: {}", exc)
            raise TransportError(f"ENTSO-E request failed: {exc}") from exc

        logger.debug("ENTSO-E response: {} bytes", len(resp.content))
        return resp.text

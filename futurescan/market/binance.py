"""Binance USDⓈ-M futures REST — shared async request helper.

Both the exchange client and the futures-data client talk to the same
public REST surface, so the retry logic lives here once.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from futurescan.errors import ExternalFetchError

logger = logging.getLogger("futurescan.market")

# Retry settings
_MAX_RETRIES = 2
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


class BinanceRestClient:
    """Async GET helper with exponential-backoff retry.

    Args:
        base_url: REST root, e.g. ``https://fapi.binance.com``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """GET *path* and return the decoded JSON body.

        Retries on transient server errors (502, 503, 504), rate limits
        (429) and transport errors.  Raises ``ExternalFetchError`` once the
        retries are exhausted or on any non-retryable HTTP error.
        """
        url = f"{self._base_url}{path}"
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, params=params, timeout=self._timeout)

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "GET %s returned %d — retry %d/%d in %.1fs",
                        url, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    await asyncio.sleep(delay)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "GET %s transport error (%s) — retry %d/%d in %.1fs",
                    url, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)
            except (httpx.HTTPStatusError, ValueError) as exc:
                raise ExternalFetchError(f"GET {url} failed: {exc}") from exc

        raise ExternalFetchError(f"GET {url} failed after {_MAX_RETRIES} attempts: {last_exc}")


def to_market_symbol(symbol: str) -> str:
    """``"BTC/USDT"`` → ``"BTCUSDT"``; already-flat symbols pass through."""
    return symbol.replace("/", "").upper()

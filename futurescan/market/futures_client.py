"""Futures-data client — funding rate, open interest, liquidations.

All three lookups fail soft and are cached per symbol for
``cache_seconds`` (default 5 minutes).  A failed lookup is remembered for
a minute so it is neither retried nor logged on every scan.
``get_snapshot`` fans them out concurrently and folds the results into a
``FuturesSnapshot``.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from futurescan.cache import ExpiringCache
from futurescan.errors import ExternalFetchError
from futurescan.market.binance import BinanceRestClient, to_market_symbol
from futurescan.market.models import FuturesSnapshot

logger = logging.getLogger("futurescan.market.futures")

_LIQUIDATION_WINDOW_MS = 60 * 60 * 1000  # 1 hour
_FAILURE_TTL_SECONDS = 60.0
_FAILED = object()


class FuturesDataClient(BinanceRestClient):
    """Async client for the perpetual-futures context endpoints.

    Args:
        base_url: REST root.
        timeout: Per-request timeout in seconds.
        cache_seconds: Lifetime of a cached endpoint response.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        cache_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(base_url, timeout)
        self._cache = ExpiringCache(ttl_seconds=cache_seconds, clock=clock)

    async def _cached(self, endpoint: str, symbol: str, fetch) -> Optional[dict]:
        key = (endpoint, symbol)
        cached = self._cache.get(key)
        if cached is _FAILED:
            logger.debug("%s for %s failed recently, skipping", endpoint, symbol)
            return None
        if cached is not None:
            return cached
        try:
            data = await fetch()
        except (ExternalFetchError, KeyError, TypeError, ValueError) as exc:
            logger.error("Error fetching %s for %s: %s", endpoint, symbol, exc)
            # Failed lookups are retried after _FAILURE_TTL_SECONDS
            self._cache.set(key, _FAILED, ttl_seconds=_FAILURE_TTL_SECONDS)
            return None
        self._cache.set(key, data)
        return data

    # ── Funding ──────────────────────────────────────────────────────────

    async def get_funding_rate(self, symbol: str) -> Optional[dict]:
        """Return ``{"funding_rate", "mark_price", "index_price"}`` or ``None``."""

        async def _fetch() -> dict:
            data = await self._get_json(
                "/fapi/v1/premiumIndex", params={"symbol": to_market_symbol(symbol)}
            )
            return {
                "funding_rate": float(data["lastFundingRate"]),
                "mark_price": float(data["markPrice"]),
                "index_price": float(data.get("indexPrice", 0) or 0),
            }

        return await self._cached("funding", symbol, _fetch)

    # ── Open interest ────────────────────────────────────────────────────

    async def get_open_interest(self, symbol: str) -> Optional[dict]:
        """Return ``{"open_interest"}`` or ``None``."""

        async def _fetch() -> dict:
            data = await self._get_json(
                "/fapi/v1/openInterest", params={"symbol": to_market_symbol(symbol)}
            )
            return {"open_interest": float(data["openInterest"])}

        return await self._cached("oi", symbol, _fetch)

    # ── Liquidations ─────────────────────────────────────────────────────

    async def get_liquidations(
        self,
        symbol: str,
        now_ms: Optional[int] = None,
    ) -> Optional[dict]:
        """Summarise forced orders from the last hour.

        SELL-side forced orders close long positions, BUY-side close shorts.
        ``liquidation_ratio`` is ``None`` when nothing was liquidated.
        """

        async def _fetch() -> dict:
            orders = await self._get_json(
                "/fapi/v1/forceOrders",
                params={"symbol": to_market_symbol(symbol), "limit": 50},
            )
            cutoff = (now_ms if now_ms is not None else int(time.time() * 1000)) - _LIQUIDATION_WINDOW_MS
            long_qty = 0.0
            short_qty = 0.0
            total_value = 0.0
            for order in orders:
                if int(order["time"]) <= cutoff:
                    continue
                qty = float(order["origQty"])
                total_value += float(order["price"]) * qty
                if order["side"] == "SELL":
                    long_qty += qty
                else:
                    short_qty += qty
            total_qty = long_qty + short_qty
            return {
                "long_liquidations": long_qty,
                "short_liquidations": short_qty,
                "total_value": total_value,
                "liquidation_ratio": long_qty / total_qty if total_qty > 0 else None,
            }

        return await self._cached("liquidations", symbol, _fetch)

    # ── Snapshot ─────────────────────────────────────────────────────────

    async def get_snapshot(self, symbol: str) -> FuturesSnapshot:
        """Fetch funding, open interest and liquidations concurrently."""
        funding, oi, liq = await asyncio.gather(
            self.get_funding_rate(symbol),
            self.get_open_interest(symbol),
            self.get_liquidations(symbol),
        )
        return FuturesSnapshot(
            symbol=symbol,
            funding_rate=funding["funding_rate"] if funding else None,
            mark_price=funding["mark_price"] if funding else None,
            open_interest=oi["open_interest"] if oi else None,
            liquidation_ratio=liq["liquidation_ratio"] if liq else None,
            liquidation_value=liq["total_value"] if liq else None,
        )

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Futures data cache cleared")

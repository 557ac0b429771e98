"""Market-data client — candles, live prices, and top-volume symbols.

Candle and price lookups fail soft: they log and return ``None`` so one bad
symbol never breaks a batch.  The symbol universe lookup raises
``ExternalFetchError`` because without it there is no scan at all.
"""

import logging
from typing import Optional

from futurescan.errors import ExternalFetchError
from futurescan.market.binance import BinanceRestClient, to_market_symbol
from futurescan.market.models import Candle, Ticker

logger = logging.getLogger("futurescan.market")

_LEVERAGED_TOKEN_MARKERS = ("UP", "DOWN", "BULL", "BEAR")


def _is_leveraged_token(symbol: str) -> bool:
    base = symbol[: -len("USDT")]
    # BTCUP / ETHBEAR style: a marker glued onto a full base asset
    return any(
        base.endswith(m) and len(base) - len(m) >= 3
        for m in _LEVERAGED_TOKEN_MARKERS
    )


class ExchangeClient(BinanceRestClient):
    """Async client for the public market-data endpoints."""

    async def fetch_candles(
        self,
        symbol: str,
        timeframe: str = "1h",
        limit: int = 100,
    ) -> Optional[list[Candle]]:
        """Fetch OHLCV candles, oldest-first.

        Returns ``None`` if the request fails.
        """
        params = {"symbol": to_market_symbol(symbol), "interval": timeframe, "limit": limit}
        try:
            rows = await self._get_json("/fapi/v1/klines", params=params)
        except ExternalFetchError as exc:
            logger.error("Error fetching candles for %s: %s", symbol, exc)
            return None

        candles: list[Candle] = []
        try:
            for row in rows:
                candles.append(
                    Candle(
                        timestamp=int(row[0]),
                        open=float(row[1]),
                        high=float(row[2]),
                        low=float(row[3]),
                        close=float(row[4]),
                        volume=float(row[5]),
                    )
                )
        except (IndexError, TypeError, ValueError) as exc:
            logger.error("Malformed kline row for %s: %s", symbol, exc)
            return None
        candles.sort(key=lambda c: c.timestamp)
        return candles

    async def fetch_price(self, symbol: str) -> Optional[float]:
        """Return the last traded price, or ``None`` if unavailable."""
        params = {"symbol": to_market_symbol(symbol)}
        try:
            data = await self._get_json("/fapi/v1/ticker/price", params=params)
            return float(data["price"])
        except (ExternalFetchError, KeyError, TypeError, ValueError) as exc:
            logger.error("Error fetching price for %s: %s", symbol, exc)
            return None

    async def fetch_tickers(self) -> list[Ticker]:
        """Return 24h tickers for every listed symbol.

        Raises ``ExternalFetchError`` if the request fails.
        """
        rows = await self._get_json("/fapi/v1/ticker/24hr")
        tickers: list[Ticker] = []
        for row in rows:
            try:
                tickers.append(
                    Ticker(
                        symbol=row["symbol"],
                        last=float(row["lastPrice"]),
                        quote_volume=float(row["quoteVolume"]),
                        percentage=float(row["priceChangePercent"]),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed ticker row: %s", row)
        return tickers

    async def fetch_top_volume_symbols(
        self,
        limit: int = 50,
        min_quote_volume: float = 100_000.0,
    ) -> list[str]:
        """Select the most-traded USDT perpetuals.

        Leveraged tokens (UP/DOWN/BULL/BEAR) are excluded.  Symbols below
        *min_quote_volume* are dropped, the rest are sorted by 24h quote
        volume descending and truncated to *limit*.
        """
        tickers = await self.fetch_tickers()
        eligible = [
            t for t in tickers
            if t.symbol.endswith("USDT")
            and not _is_leveraged_token(t.symbol)
            and t.quote_volume >= min_quote_volume
        ]
        eligible.sort(key=lambda t: t.quote_volume, reverse=True)
        selected = [t.symbol for t in eligible[:limit]]
        logger.info(
            "Selected %d symbols with minimum volume %.0f USDT",
            len(selected), min_quote_volume,
        )
        return selected

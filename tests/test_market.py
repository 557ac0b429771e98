"""Tests for futurescan.market — REST clients with mocked HTTP responses."""

import logging

import pytest
import httpx

from futurescan.errors import ExternalFetchError
from futurescan.market.binance import BinanceRestClient, to_market_symbol
from futurescan.market.exchange_client import ExchangeClient
from futurescan.market.futures_client import FuturesDataClient
from futurescan.market.models import Candle

BASE_URL = "https://fapi.test"
NOW_MS = 1_740_830_400_000


# ── Mock exchange responses ──────────────────────────────────────────────

MOCK_KLINES = [
    [1_740_830_400_000, "101.0", "103.0", "100.5", "102.5", "1500.0", 0, "0", 10, "0", "0", "0"],
    [1_740_826_800_000, "100.0", "101.5", "99.5", "101.0", "1200.0", 0, "0", 10, "0", "0", "0"],
]

MOCK_TICKERS = [
    {"symbol": "BTCUSDT", "lastPrice": "65000", "quoteVolume": "9000000", "priceChangePercent": "1.2"},
    {"symbol": "ETHUSDT", "lastPrice": "3200", "quoteVolume": "5000000", "priceChangePercent": "-0.4"},
    {"symbol": "DOGEUSDT", "lastPrice": "0.12", "quoteVolume": "50000", "priceChangePercent": "3.0"},
    {"symbol": "BTCUPUSDT", "lastPrice": "10", "quoteVolume": "8000000", "priceChangePercent": "2.0"},
    {"symbol": "ETHBEARUSDT", "lastPrice": "1", "quoteVolume": "7000000", "priceChangePercent": "2.0"},
    {"symbol": "JUPUSDT", "lastPrice": "0.9", "quoteVolume": "6000000", "priceChangePercent": "0.1"},
    {"symbol": "BTCBUSD", "lastPrice": "65000", "quoteVolume": "99000000", "priceChangePercent": "0.0"},
    {"symbol": "BROKEN"},
]

MOCK_PREMIUM_INDEX = {
    "symbol": "BTCUSDT",
    "markPrice": "65010.5",
    "indexPrice": "65000.0",
    "lastFundingRate": "0.00012",
}

MOCK_OPEN_INTEREST = {"symbol": "BTCUSDT", "openInterest": "81234.5"}

MOCK_FORCE_ORDERS = [
    {"side": "SELL", "price": "100.0", "origQty": "3", "time": NOW_MS - 60_000},
    {"side": "BUY", "price": "100.0", "origQty": "1", "time": NOW_MS - 120_000},
    # Outside the one-hour window
    {"side": "BUY", "price": "100.0", "origQty": "50", "time": NOW_MS - 2 * 3_600_000},
]


def _route(responses: dict, calls: list | None = None):
    """Build an ``httpx.AsyncClient.get`` replacement keyed by URL path."""

    async def _mock_get(self, url, *, params=None, timeout=None):
        path = url.removeprefix(BASE_URL)
        if calls is not None:
            calls.append((path, params))
        status, body = responses[path]
        return httpx.Response(status, json=body, request=httpx.Request("GET", url))

    return _mock_get


# ── Shared request helper ────────────────────────────────────────────────


class TestRestClient:
    def test_to_market_symbol(self):
        assert to_market_symbol("btc/usdt") == "BTCUSDT"
        assert to_market_symbol("ETHUSDT") == "ETHUSDT"

    @pytest.mark.asyncio
    async def test_retries_transient_status(self, monkeypatch):
        monkeypatch.setattr("futurescan.market.binance._RETRY_BASE_DELAY", 0)
        statuses = [503, 200]

        async def _mock_get(self, url, *, params=None, timeout=None):
            status = statuses.pop(0)
            return httpx.Response(status, json={"ok": True}, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)
        client = BinanceRestClient(BASE_URL)
        assert await client._get_json("/ping") == {"ok": True}
        assert statuses == []

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, monkeypatch):
        monkeypatch.setattr("futurescan.market.binance._RETRY_BASE_DELAY", 0)

        async def _mock_get(self, url, *, params=None, timeout=None):
            raise httpx.ConnectTimeout("timed out")

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)
        with pytest.raises(ExternalFetchError, match="after 2 attempts"):
            await BinanceRestClient(BASE_URL)._get_json("/ping")

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, monkeypatch):
        calls = []
        monkeypatch.setattr(httpx.AsyncClient, "get", _route({"/ping": (400, {"code": -1121})}, calls))
        with pytest.raises(ExternalFetchError):
            await BinanceRestClient(BASE_URL)._get_json("/ping")
        assert len(calls) == 1


# ── Exchange client ──────────────────────────────────────────────────────


class TestExchangeClient:
    @pytest.mark.asyncio
    async def test_parse_candles_oldest_first(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/klines": (200, MOCK_KLINES)}, calls)
        )

        candles = await ExchangeClient(BASE_URL).fetch_candles("BTC/USDT", "1h", limit=2)

        assert len(candles) == 2
        c = candles[0]
        assert isinstance(c, Candle)
        assert c.timestamp == 1_740_826_800_000
        assert c.open == pytest.approx(100.0)
        assert c.high == pytest.approx(101.5)
        assert c.close == pytest.approx(101.0)
        assert c.volume == pytest.approx(1200.0)
        assert calls[0][1] == {"symbol": "BTCUSDT", "interval": "1h", "limit": 2}

    @pytest.mark.asyncio
    async def test_candles_fail_soft(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/klines": (400, {"code": -1121})})
        )
        assert await ExchangeClient(BASE_URL).fetch_candles("NOPEUSDT") is None

    @pytest.mark.asyncio
    async def test_malformed_kline_rows_fail_soft(self, monkeypatch):
        for rows in ([[1_740_826_800_000, "100.0", "101.5"]],
                     [[1_740_826_800_000, "100.0", "101.5", "99.5", "n/a", "1200.0"]]):
            monkeypatch.setattr(
                httpx.AsyncClient, "get", _route({"/fapi/v1/klines": (200, rows)})
            )
            assert await ExchangeClient(BASE_URL).fetch_candles("BTCUSDT") is None

    @pytest.mark.asyncio
    async def test_fetch_price(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get",
            _route({"/fapi/v1/ticker/price": (200, {"symbol": "BTCUSDT", "price": "65001.25"})}),
        )
        assert await ExchangeClient(BASE_URL).fetch_price("BTCUSDT") == pytest.approx(65001.25)

    @pytest.mark.asyncio
    async def test_fetch_price_malformed_is_none(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/ticker/price": (200, {"symbol": "BTCUSDT"})})
        )
        assert await ExchangeClient(BASE_URL).fetch_price("BTCUSDT") is None

    @pytest.mark.asyncio
    async def test_top_volume_filter(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/ticker/24hr": (200, MOCK_TICKERS)})
        )

        symbols = await ExchangeClient(BASE_URL).fetch_top_volume_symbols(
            limit=10, min_quote_volume=100_000
        )

        # Leveraged tokens, non-USDT quotes and thin markets excluded; JUP kept
        assert symbols == ["BTCUSDT", "JUPUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_top_volume_sorted_and_truncated(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/ticker/24hr": (200, MOCK_TICKERS)})
        )
        symbols = await ExchangeClient(BASE_URL).fetch_top_volume_symbols(
            limit=2, min_quote_volume=100_000
        )
        assert symbols == ["BTCUSDT", "JUPUSDT"]

    @pytest.mark.asyncio
    async def test_ticker_failure_raises(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/ticker/24hr": (403, {})})
        )
        with pytest.raises(ExternalFetchError):
            await ExchangeClient(BASE_URL).fetch_top_volume_symbols()


# ── Futures-data client ──────────────────────────────────────────────────


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestFuturesDataClient:
    @pytest.mark.asyncio
    async def test_funding_rate(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/premiumIndex": (200, MOCK_PREMIUM_INDEX)})
        )
        funding = await FuturesDataClient(BASE_URL).get_funding_rate("BTCUSDT")
        assert funding["funding_rate"] == pytest.approx(0.00012)
        assert funding["mark_price"] == pytest.approx(65010.5)

    @pytest.mark.asyncio
    async def test_liquidations_within_last_hour(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/forceOrders": (200, MOCK_FORCE_ORDERS)})
        )
        liq = await FuturesDataClient(BASE_URL).get_liquidations("BTCUSDT", now_ms=NOW_MS)
        assert liq["long_liquidations"] == pytest.approx(3.0)
        assert liq["short_liquidations"] == pytest.approx(1.0)
        assert liq["liquidation_ratio"] == pytest.approx(0.75)
        assert liq["total_value"] == pytest.approx(400.0)

    @pytest.mark.asyncio
    async def test_no_liquidations_has_no_ratio(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get", _route({"/fapi/v1/forceOrders": (200, [])})
        )
        liq = await FuturesDataClient(BASE_URL).get_liquidations("BTCUSDT", now_ms=NOW_MS)
        assert liq["liquidation_ratio"] is None

    @pytest.mark.asyncio
    async def test_responses_cached_until_expiry(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            httpx.AsyncClient, "get",
            _route({"/fapi/v1/openInterest": (200, MOCK_OPEN_INTEREST)}, calls),
        )
        clock = FakeClock()
        client = FuturesDataClient(BASE_URL, cache_seconds=300, clock=clock)

        await client.get_open_interest("BTCUSDT")
        await client.get_open_interest("BTCUSDT")
        assert len(calls) == 1

        clock.now = 300
        oi = await client.get_open_interest("BTCUSDT")
        assert len(calls) == 2
        assert oi["open_interest"] == pytest.approx(81234.5)

    @pytest.mark.asyncio
    async def test_failed_lookup_not_retried_until_backoff(self, monkeypatch, caplog):
        calls = []
        monkeypatch.setattr(
            httpx.AsyncClient, "get",
            _route({"/fapi/v1/forceOrders": (401, {"code": -2015})}, calls),
        )
        clock = FakeClock()
        client = FuturesDataClient(BASE_URL, cache_seconds=300, clock=clock)

        with caplog.at_level(logging.ERROR, logger="futurescan.market.futures"):
            assert await client.get_liquidations("BTCUSDT", now_ms=NOW_MS) is None
            clock.now = 59
            assert await client.get_liquidations("BTCUSDT", now_ms=NOW_MS) is None
        assert len(calls) == 1
        errors = [r for r in caplog.records if r.name == "futurescan.market.futures"]
        assert len(errors) == 1

        clock.now = 60
        await client.get_liquidations("BTCUSDT", now_ms=NOW_MS)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_snapshot_partial_on_endpoint_failure(self, monkeypatch):
        monkeypatch.setattr(
            httpx.AsyncClient, "get",
            _route({
                "/fapi/v1/premiumIndex": (200, MOCK_PREMIUM_INDEX),
                "/fapi/v1/openInterest": (400, {"code": -1121}),
                "/fapi/v1/forceOrders": (200, []),
            }),
        )
        snapshot = await FuturesDataClient(BASE_URL).get_snapshot("BTCUSDT")
        assert snapshot.funding_rate == pytest.approx(0.00012)
        assert snapshot.open_interest is None
        assert snapshot.liquidation_ratio is None
        assert not snapshot.is_empty

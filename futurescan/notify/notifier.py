"""Notification collaborators.

``LogNotifier`` writes a one-line summary of each event to the log.
``WebhookNotifier`` POSTs the event as JSON to a configured URL; delivery
failures raise ``NotificationError`` so the caller can decide whether to
carry on.
"""

import logging
from typing import Protocol

import httpx

from futurescan.errors import NotificationError
from futurescan.events import AlertEvent, SignalEvent, StatusEvent, TradeEvent

logger = logging.getLogger("futurescan.notify")


class Notifier(Protocol):
    """Interface every notification channel implements."""

    async def send_signal(self, event: SignalEvent) -> None: ...

    async def send_trade_update(self, event: TradeEvent) -> None: ...

    async def send_alert(self, event: AlertEvent) -> None: ...

    async def send_status(self, event: StatusEvent) -> None: ...


class LogNotifier:
    """Notifier used when no webhook is configured."""

    async def send_signal(self, event: SignalEvent) -> None:
        signal = event.signal
        tps = event.take_profits
        logger.info(
            "SIGNAL %s %s (%s, strength %.1f, risk %s) entry=%.6g stop=%.6g "
            "tp=%.6g/%.6g/%.6g leverage=%dx",
            event.symbol, signal["direction"], signal["confidence"],
            signal["strength"], signal["risk_level"], event.entry_price,
            event.stop_loss, tps["tp1"], tps["tp2"], tps["tp3"],
            event.position_info["leverage"],
        )

    async def send_trade_update(self, event: TradeEvent) -> None:
        logger.info("TRADE %s %s @ %.6g: %s", event.symbol, event.type, event.price, event.message)

    async def send_alert(self, event: AlertEvent) -> None:
        logger.error("ALERT [%s] %s", event.context, event.error_description)

    async def send_status(self, event: StatusEvent) -> None:
        logger.info("STATUS %s: %s", event.kind, event.message)


class WebhookNotifier:
    """POSTs ``{"kind": ..., "event": {...}}`` JSON to *url*.

    Args:
        url: Webhook endpoint.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self._url = url
        self._timeout = timeout

    async def _post(self, kind: str, payload: dict) -> None:
        body = {"kind": kind, "event": payload}
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self._url, json=body, timeout=self._timeout)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"webhook delivery of {kind} failed: {exc}") from exc
        logger.debug("Webhook %s delivered (%d)", kind, resp.status_code)

    async def send_signal(self, event: SignalEvent) -> None:
        await self._post("signal", event.to_dict())

    async def send_trade_update(self, event: TradeEvent) -> None:
        await self._post("trade_update", event.to_dict())

    async def send_alert(self, event: AlertEvent) -> None:
        await self._post("alert", event.to_dict())

    async def send_status(self, event: StatusEvent) -> None:
        await self._post("status", event.to_dict())


def build_notifier(webhook_url: str | None, timeout: float = 10.0) -> Notifier:
    """Webhook notifier when a URL is configured, log notifier otherwise."""
    if webhook_url:
        return WebhookNotifier(webhook_url, timeout)
    return LogNotifier()

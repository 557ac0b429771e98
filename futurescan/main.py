"""FuturesScan — application entry point.

Wires the market clients, scanner, trade monitor and notifier together,
then runs the scan and poll loops under a supervisor next to the internal
FastAPI server.

Usage::

    python -m futurescan.main [--once] [--no-api] [--port N]
"""

import argparse
import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from futurescan.api.routers import router
from futurescan.config import Config, load_config
from futurescan.errors import NotificationError
from futurescan.events import StatusEvent
from futurescan.market.exchange_client import ExchangeClient
from futurescan.market.futures_client import FuturesDataClient
from futurescan.monitor.trade_monitor import TradeMonitor
from futurescan.notify.notifier import Notifier, build_notifier
from futurescan.scanner import MarketScanner
from futurescan.scheduler import PeriodicTask, Supervisor

logger = logging.getLogger("futurescan")


def create_app(
    scanner: MarketScanner,
    monitor: Optional[TradeMonitor] = None,
    scan_task: Optional[PeriodicTask] = None,
) -> FastAPI:
    """Build the internal API around already-constructed components."""
    app = FastAPI(title="FuturesScan Internal API", version="0.1.0")
    app.include_router(router)
    app.state.scanner = scanner
    app.state.monitor = monitor
    app.state.scan_task = scan_task
    return app


@dataclass
class Components:
    notifier: Notifier
    scanner: MarketScanner
    monitor: Optional[TradeMonitor]


def build_components(config: Config) -> Components:
    """Construct every long-lived component once, sharing the clients."""
    exchange = ExchangeClient(config.exchange_base_url, config.http_timeout_seconds)
    futures = FuturesDataClient(
        config.exchange_base_url,
        timeout=config.http_timeout_seconds,
        cache_seconds=config.futures_cache_seconds,
    )
    notifier = build_notifier(config.notify_webhook_url, config.http_timeout_seconds)

    monitor: Optional[TradeMonitor] = None
    if config.monitor_enabled:
        monitor = TradeMonitor(
            prices=exchange,
            notifier=notifier,
            expiry_hours=config.trade_expiry_hours,
            archive_size=config.archive_size,
            batch_size=config.monitor_batch_size,
            batch_delay_seconds=config.batch_delay_seconds,
        )
    else:
        logger.info("Trade monitoring is disabled")

    scanner = MarketScanner(exchange, futures, notifier, monitor, config)
    return Components(notifier=notifier, scanner=scanner, monitor=monitor)


async def announce_startup(notifier: Notifier, config: Config) -> None:
    """Send the STARTUP status event; a delivery failure is logged, not raised."""
    event = StatusEvent(
        kind="STARTUP",
        message=(
            f"FuturesScan started: scanning every {config.scan_interval_minutes} min, "
            f"top {config.max_tokens_per_scan} symbols above "
            f"{config.min_volume_usdt:,.0f} USDT, min confidence {config.min_confidence:g}%"
        ),
        details={
            "scan_interval_minutes": config.scan_interval_minutes,
            "min_volume_usdt": config.min_volume_usdt,
            "max_tokens_per_scan": config.max_tokens_per_scan,
            "min_confidence": config.min_confidence,
            "monitor_enabled": config.monitor_enabled,
        },
    )
    try:
        await notifier.send_status(event)
    except NotificationError as exc:
        logger.error("Failed to send startup status: %s", exc)


async def run_once(config: Config) -> None:
    """Run a single scan cycle and exit."""
    components = build_components(config)
    record = await components.scanner.scan()
    if record is None:
        logger.error("Scan failed")
    else:
        logger.info(
            "Scan complete: %d signals from %d symbols",
            record.signals_found, record.symbols_analyzed,
        )


async def run_service(config: Config, port: int, with_api: bool = True) -> None:
    """Run the scan and poll loops (and the API) until interrupted."""
    import uvicorn

    components = build_components(config)
    supervisor = Supervisor(components.notifier)

    tasks = [
        PeriodicTask("market-scan", config.scan_interval_seconds, components.scanner.scan),
    ]
    if components.monitor is not None:
        tasks.append(
            PeriodicTask("trade-poll", config.monitor_interval_seconds, components.monitor.poll)
        )

    server: Optional[uvicorn.Server] = None
    if with_api:
        app = create_app(components.scanner, components.monitor, tasks[0])
        server = uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=port, log_level=config.log_level.lower())
        )

    def shutdown() -> None:
        logger.info("Shutdown requested — finishing in-flight work.")
        for task in tasks:
            task.stop()
        if server is not None:
            server.should_exit = True

    signal.signal(signal.SIGINT, lambda signum, frame: shutdown())

    async def _run_server() -> None:
        await server.serve()
        shutdown()

    coros = [supervisor.supervise(task) for task in tasks]
    if server is not None:
        coros.append(_run_server())
        logger.info("Internal API available at http://localhost:%d", port)

    logger.info(
        "FuturesScan started: scanning every %d min, monitoring %s",
        config.scan_interval_minutes,
        "on" if components.monitor is not None else "off",
    )
    await announce_startup(components.notifier, config)
    await asyncio.gather(*coros)
    logger.info("FuturesScan stopped.")


def _run_cli() -> None:
    """Parse CLI arguments and start the service."""
    parser = argparse.ArgumentParser(description="FuturesScan signal scanner")
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit")
    parser.add_argument("--no-api", action="store_true", help="Do not start the internal API")
    parser.add_argument("--port", type=int, default=None, help="Internal API port")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.once:
        asyncio.run(run_once(config))
        return
    asyncio.run(run_service(config, args.port or config.api_port, with_api=not args.no_api))


if __name__ == "__main__":
    _run_cli()

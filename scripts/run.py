#!/usr/bin/env python3
"""Sentinel entrypoint — wires the supervisor and runs until signalled.

Usage::

    # Supervise with config/settings.yaml until SIGINT/SIGTERM
    dera-sentinel

    # Alternate config, verbose
    dera-sentinel --config /etc/dera/sentinel.yaml --log-level DEBUG

    # One health + metrics cycle, print the status, exit
    dera-sentinel --once
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys

import structlog

from sentinel.core.config import Settings, load_settings
from sentinel.core.logging import setup_logging
from sentinel.monitor.factory import create_monitor_stack
from sentinel.risk.exceptions import InitializationError
from sentinel.service import MonitoringService

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dera-sentinel",
        description="Monitor the Dera lending protocol and pause it on critical failures.",
    )
    parser.add_argument(
        "--config", default=None, help="Settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument("--log-level", default=None, help="Override logging.level from the config")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the startup health and metrics cycle, print status as JSON and exit",
    )
    return parser


SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # ProactorEventLoop
            pass


def _remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            pass


async def _start_or_stop(
    service: MonitoringService, stop: asyncio.Event, grace_secs: float,
) -> None:
    """Start *service*, giving up after *grace_secs* if a signal lands first."""
    starting = asyncio.ensure_future(service.start())
    stopping = asyncio.ensure_future(stop.wait())
    await asyncio.wait({starting, stopping}, return_when=asyncio.FIRST_COMPLETED)
    stopping.cancel()
    if starting.done():
        starting.result()
        return
    logger.info("shutdown_signal_received", phase="starting")
    try:
        await asyncio.wait_for(starting, timeout=grace_secs)
    except TimeoutError:
        logger.warning("startup_abandoned", grace_secs=grace_secs)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(settings.logging, level=args.log_level, network=settings.network.name)

    stop = asyncio.Event()
    _install_signal_handlers(stop)
    try:
        return await _supervise(args, settings, stop)
    finally:
        _remove_signal_handlers()


async def _supervise(
    args: argparse.Namespace, settings: Settings, stop: asyncio.Event,
) -> int:
    dispatcher = create_monitor_stack(settings.alerts)
    logger.info(
        "sentinel_starting",
        channels=[ch.name for ch in dispatcher.channels],
        auto_pause=settings.monitor.auto_pause_enabled,
        liquidation_scan=settings.liquidation.enabled,
        price_feed=settings.price_feed.enabled,
    )

    service = MonitoringService(settings, dispatcher)
    try:
        await _start_or_stop(service, stop, settings.monitor.shutdown_grace_secs)
    except InitializationError as exc:
        logger.error("sentinel_init_failed", error=str(exc))
        await dispatcher.close()
        return 1

    try:
        if not stop.is_set():
            if args.once:
                print(json.dumps(service.status(), indent=2, default=str))
            else:
                await stop.wait()
                logger.info("shutdown_signal_received", phase="running")
    finally:
        await service.stop()
        summary = dispatcher.stats()
        await dispatcher.close()

    logger.info(
        "sentinel_stopped",
        alerts=summary["counts"],
        channel_failures=summary["channel_failures"],
    )
    return 0


def main() -> None:
    args = build_parser().parse_args()
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()

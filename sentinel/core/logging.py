"""structlog wiring for the sentinel process.

Every record is routed through the stdlib root logger so library output
(web3, httpx, aiohttp) and the sentinel's own events share one renderer.
"""

from __future__ import annotations

import logging
import sys

import structlog

from sentinel.core.config import LoggingConfig

# Libraries whose per-request records drown out the supervisor's own events.
QUIET_LOGGERS = ("web3", "httpx", "httpcore", "aiohttp.access", "urllib3")


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str | None = None,
    network: str | None = None,
) -> None:
    """Install the structlog pipeline on the root logger.

    Args:
        config: ``logging`` section of the settings; defaults apply if None.
        level: Overrides ``config.level`` (e.g. from ``--log-level``).
        network: Bound into every record as ``network`` when given.
    """
    config = config or LoggingConfig()
    log_level = logging.getLevelName((level or config.level).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config.format),
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.contextvars.clear_contextvars()
    if network:
        structlog.contextvars.bind_contextvars(network=network)

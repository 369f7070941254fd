"""
Structured logging configuration using structlog.

JSON lines by default, a colored console renderer when ``LOG_FORMAT=console``.
Gateway modules log through stdlib ``logging`` with %-style messages; those
records go through the same processor chain as structlog events, so the
chain/network/txHash context bound by the request middleware shows up on
every line emitted while a call is handled.
"""

import logging
import re
import sys
from typing import Any, MutableMapping, Optional

import structlog

from .config import settings


# Hashes (66 chars) and addresses stay whole; calldata and raw signed
# transactions are cut down to their head.
_LONG_HEX = re.compile(r"^0x[0-9a-fA-F]{130,}$")
HEX_KEEP = 18

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def shorten_hex_payloads(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Truncate raw transactions and calldata bound to a log event."""
    for key, value in event_dict.items():
        if isinstance(value, str) and _LONG_HEX.match(value):
            event_dict[key] = f"{value[:HEX_KEEP]}...({len(value) - 2} hex chars)"
    return event_dict


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: settings.log_level)
        log_format: "json" or "console" (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = log_format or settings.log_format

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        shorten_hex_payloads,
    ]

    if fmt == "console":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Node traffic is counted by the connectors' metric logger instead
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

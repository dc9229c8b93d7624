"""
Diagnostic logging: stdlib loggers rendered through structlog.

Every module logs with logging.getLogger(__name__); this only installs the
stderr handler, so log lines never interleave with the calendar grid on
stdout. Console output by default, one JSON object per line when
OOO_LOG_FORMAT=json.

Usage:
    from ooo_logging import setup_logging
    setup_logging("INFO")
"""

import logging
import os
import sys

import structlog


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("OOO_LOG_LEVEL", "WARNING")
    if json_output is None:
        json_output = os.environ.get("OOO_LOG_FORMAT", "").lower() == "json"

    pre_chain = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

"""Structured logging for contenant.

Configured at import time from the environment, before LauncherSettings or
any config layer is parsed, so config errors themselves can be logged.

``CONTENANT_LOG_LEVEL``   stdlib level name, default ``INFO``
``CONTENANT_LOG_FORMAT``  ``console`` (default) or ``json``

Logs go to stderr; stdout belongs to the container's terminal session.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

LOG_LEVEL_ENV = "CONTENANT_LOG_LEVEL"
LOG_FORMAT_ENV = "CONTENANT_LOG_FORMAT"


def _render_chain(fmt: str) -> list[structlog.typing.Processor]:
    if fmt == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def _setup_logging() -> structlog.stdlib.BoundLogger:
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    # aiohttp logs one line per bridge request at INFO; ours already cover it
    logging.getLogger("aiohttp.access").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            # project_id and friends, bound for the length of one run
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            *_render_chain(os.environ.get(LOG_FORMAT_ENV, "console").lower()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("contenant")


logger = _setup_logging()


def _log_uncaught(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("contenant crashed", exc_info=(exc_type, exc_value, exc_tb))
    sys.exit(1)


sys.excepthook = _log_uncaught

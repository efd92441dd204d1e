"""Logging for cutplane runs: structlog events rendered by stdlib handlers.

Each configured output gets its own handler, level and renderer (console
or JSON lines). Every event carries the run context bound through
``start_run`` and ``bind_run_context``, so the lines of one upgrade (run
id, diamond, chain) can be pulled out of a shared log file. Console
handlers are held back while a rich spinner owns the terminal.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from cutplane.config.models import LoggingConfig, LogOutputConfig

# Log every RPC round trip at DEBUG
_CHATTY_LOGGERS = ("web3", "urllib3")

_CONSOLE_DESTINATIONS = frozenset({"stderr", "stdout"})

_quiet = threading.local()
_log_file: Path | None = None


# =============================================================================
# Run context
# =============================================================================


def start_run(run_id: str | None = None, **context: Any) -> str:
    """Drop context left by an earlier run and bind a fresh run id."""
    rid = run_id or uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(run_id=rid, **context)
    return rid


def bind_run_context(**context: Any) -> None:
    """Attach facts learned mid-run (diamond, chain) to every later event."""
    structlog.contextvars.bind_contextvars(**context)


def get_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("run_id")


# =============================================================================
# Console quieting
# =============================================================================


def console_is_quiet() -> bool:
    return getattr(_quiet, "active", False)


@contextmanager
def quiet_console() -> Iterator[None]:
    """Hold back console log lines; file outputs keep receiving them."""
    previous = console_is_quiet()
    _quiet.active = True
    try:
        yield
    finally:
        _quiet.active = previous


class _QuietConsoleFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        return not console_is_quiet()


# =============================================================================
# Configuration
# =============================================================================


def get_log_file_path() -> Path | None:
    """First file output of the active configuration, for error hints."""
    return _log_file


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog through one stdlib handler per configured output.

    Without ``config``, a single stderr output at ``level``, rendered as
    JSON when ``json_format`` is set.
    """
    from cutplane.config.models import LoggingConfig, LogOutputConfig

    global _log_file

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguring must reach loggers created at import time
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_file = None
    for output in config.outputs:
        handler = _output_handler(output, pre_chain)
        handler.setLevel(_level(output.level or config.level, root_level))
        root.addHandler(handler)
        if _log_file is None and output.destination not in _CONSOLE_DESTINATIONS:
            _log_file = Path(output.destination)


def _output_handler(
    output: LogOutputConfig,
    pre_chain: list[structlog.types.Processor],
) -> logging.Handler:
    handler: logging.Handler
    colors = False
    if output.destination in _CONSOLE_DESTINATIONS:
        stream = sys.stderr if output.destination == "stderr" else sys.stdout
        handler = logging.StreamHandler(stream)
        handler.addFilter(_QuietConsoleFilter())
        colors = stream.isatty()
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")

    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))
    return handler


def _level(name: str, default: int) -> int:
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else default

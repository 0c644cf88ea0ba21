import json
import logging
import os
import sys

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool = False) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    if with_name:
        fmt = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
    else:
        fmt = "[%(asctime)s] [%(levelname)s] %(message)s"
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def level_for(
    verbosity: int = 0, debug: bool = False, default_level: str = "INFO"
) -> int:
    """Map ``-v`` count (or ``debug``) onto a logging level.

    0-1 -> LOG_LEVEL env var (default *default_level*); 2+ or debug -> DEBUG.
    """
    if debug or verbosity >= 2:
        return logging.DEBUG
    env_level = os.getenv("LOG_LEVEL", default_level).upper()
    return getattr(logging, env_level, logging.INFO)


def setup_logging(
    verbosity: int = 0,
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    default_level: str = "INFO",
) -> None:
    """
    Configure logging for the CLI.

    Logs go to stderr so stdout stays reserved for the action list, the
    report and ``--json`` output.

    Args:
        verbosity: Number of ``-v`` flags given.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Also write log records to this file.
        debug_format: "text" (default) or "json" for structured output.
        default_level: Level used when LOG_LEVEL is unset (from the
            YAML ``logging`` section).

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: *default_level*.
    """
    log_level = level_for(verbosity, debug, default_level)

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_formatter(debug_format))
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(_formatter(debug_format, with_name=True))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("azure").setLevel(logging.WARNING)
        logging.getLogger("backoff").setLevel(logging.WARNING)

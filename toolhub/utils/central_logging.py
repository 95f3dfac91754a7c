"""
Central Logging
===============
All components log through ``toolhub.<component>`` loggers:
- console (stdout, or stderr when stdout carries the stdio transport)
- optional rotating file with source location
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

FMT = "%(asctime)s|%(levelname)-8s|%(component)-20s|%(message)s"
FMT_DETAIL = "%(asctime)s|%(levelname)-8s|%(component)-20s|%(filename)s:%(lineno)d|%(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES, BACKUP = 10 * 1024 * 1024, 5

ROOT_LOGGER = "toolhub"

_init = {"central": False}


class ComponentFormatter(logging.Formatter):
    """Adds the component tag (logger name without the package prefix)."""

    def format(self, record):
        name = record.name
        if name.startswith(f"{ROOT_LOGGER}."):
            name = name[len(ROOT_LOGGER) + 1:]
        if len(name) > 20:
            name = name[:17] + "..."
        record.component = name
        return super().format(record)


class ColorFormatter(ComponentFormatter):
    """Formatter with ANSI colors for console."""
    C = {10: '\033[36m', 20: '\033[32m', 30: '\033[33m', 40: '\033[31m', 50: '\033[35m'}
    R = '\033[0m'

    def format(self, r):
        return f"{self.C.get(r.levelno, '')}{super().format(r)}{self.R}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    stream=None,
    color: bool = True,
) -> logging.Logger:
    """Initialize central logging. Call once at startup."""
    logger = logging.getLogger(ROOT_LOGGER)
    if _init["central"]:
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    out = stream or sys.stdout
    console = logging.StreamHandler(out)
    use_color = color and hasattr(out, "isatty") and out.isatty()
    console.setFormatter((ColorFormatter if use_color else ComponentFormatter)(FMT, DATE_FMT))
    logger.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=MAX_BYTES, backupCount=BACKUP, encoding="utf-8")
        file_handler.setFormatter(ComponentFormatter(FMT_DETAIL, DATE_FMT))
        logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)

    _init["central"] = True
    logger.debug("Logging initialized | level=%s | file=%s", level, log_file or "-")
    return logger


def reset_logging() -> None:
    """Drop configured handlers so ``setup_logging`` can run again."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    _init["central"] = False


def get_logger(component: str) -> logging.Logger:
    """Get logger with toolhub prefix."""
    if component.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(component)
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def log_tool_call(tool_name: str, params: Dict[str, Any], result=None, error=None):
    logger = get_logger("mcp.tools")
    keys = ",".join(sorted(params)) if params else "-"
    if error:
        logger.error(f"TOOL_CALL | {tool_name} | args={keys} | ERROR: {error}")
    else:
        result_preview = str(result)[:100] + "..." if len(str(result)) > 100 else str(result)
        logger.info(f"TOOL_CALL | {tool_name} | args={keys} | OK | {result_preview}")

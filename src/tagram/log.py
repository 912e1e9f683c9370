from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tagram.config import LogFormat, LoggingConfig


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"


_LEVEL_STYLES = {
    logging.DEBUG: ("[DEBUG]", (Colors.MAGENTA,)),
    logging.INFO: ("[INFO]", (Colors.CYAN,)),
    logging.WARNING: ("[WARN]", (Colors.YELLOW, Colors.BOLD)),
    logging.ERROR: ("[ERROR]", (Colors.RED, Colors.BOLD)),
    logging.CRITICAL: ("[ERROR]", (Colors.RED, Colors.BOLD)),
}


class TagramFormatter(logging.Formatter):
    """Formats records as ``time [LEVEL] location message``.

    ``compact`` drops the location, ``minimal`` keeps only level and message.
    """

    def __init__(self, fmt: LogFormat = "verbose", *, colors: bool = False) -> None:
        super().__init__()
        self._layout = fmt
        self._colors = colors

    def _color(self, text: str, *codes: str) -> str:
        if not self._colors:
            return text
        return f"{''.join(codes)}{text}{Colors.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        label, codes = _LEVEL_STYLES.get(record.levelno, ("[INFO]", (Colors.CYAN,)))
        level = self._color(label, *codes)
        message = record.getMessage()
        if record.levelno >= logging.ERROR:
            message = self._color(message, Colors.RED)
        elif record.levelno == logging.WARNING:
            message = self._color(message, Colors.YELLOW)
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        time = datetime.fromtimestamp(record.created)
        match self._layout:
            case "minimal":
                return f"{level} {message}"
            case "compact":
                stamp = self._color(time.strftime("%H:%M:%S"), Colors.DIM)
                return f"{stamp} {level} {message}"
            case _:
                stamp = self._color(time.strftime("%H:%M:%S.%f")[:-3], Colors.DIM)
                location = self._color(
                    f"{record.name}:{record.funcName}:{record.lineno}", Colors.BLUE
                )
                return f"{stamp} {level} {location} {message}"


def configure(config: LoggingConfig) -> logging.Logger:
    """Install a single stderr handler on the ``tagram`` logger."""
    logger = logging.getLogger("tagram")
    logger.setLevel(config.level.upper())
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        TagramFormatter(config.format, colors=config.colors and sys.stderr.isatty())
    )
    logger.addHandler(handler)
    return logger

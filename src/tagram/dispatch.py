"""Command classification and reply formatting.

Grammar, first match wins:

- ``<echo>TEXT</echo>``  -> ``<reply>TEXT</reply>``
- ``<loadavg/>``         -> ``<replyLoadAvg>L1:L5:L15</replyLoadAvg>``
- ``<shutdown/>``        -> ``<reply>shutdown acknowledged</reply>`` and the
  run state is stopped
- anything else          -> ``<error>ORIGINAL</error>``
"""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from tagram.server import RunState

__all__ = [
    "Command",
    "Dispatcher",
    "LOADAVG_UNAVAILABLE",
    "REPLY_OVERHEAD",
    "Reply",
    "SHUTDOWN_ACK",
]

logger = logging.getLogger("tagram.dispatch")

ECHO_OPEN = "<echo>"
ECHO_CLOSE = "</echo>"
LOADAVG = "<loadavg/>"
SHUTDOWN = "<shutdown/>"

SHUTDOWN_ACK = "<reply>shutdown acknowledged</reply>"
LOADAVG_UNAVAILABLE = "<error>loadavg unavailable</error>"

# Largest growth of a reply over its request: the error wrapper.
REPLY_OVERHEAD = len("<error></error>")

LoadAvgFn: TypeAlias = Callable[[], tuple[float, float, float]]


class Command(enum.Enum):
    ECHO = "echo"
    LOADAVG = "loadavg"
    SHUTDOWN = "shutdown"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Reply:
    """Outcome of dispatching one message.

    Parameters
    ----------
    command : Command
        The grammar rule that matched.
    text : str
        Reply text to send back to the peer.
    """

    command: Command
    text: str


def classify(message: str) -> Command:
    if message.startswith(ECHO_OPEN) and message.endswith(ECHO_CLOSE):
        return Command.ECHO
    if message == LOADAVG:
        return Command.LOADAVG
    if message == SHUTDOWN:
        return Command.SHUTDOWN
    return Command.MALFORMED


def echo_body(message: str) -> str:
    """Return the text between ``<echo>`` and ``</echo>``, empty if they overlap."""
    end = max(len(message) - len(ECHO_CLOSE), len(ECHO_OPEN))
    return message[len(ECHO_OPEN) : end]


def format_loadavg(averages: tuple[float, float, float]) -> str:
    one, five, fifteen = averages
    return f"<replyLoadAvg>{one:f}:{five:f}:{fifteen:f}</replyLoadAvg>"


class Dispatcher:
    """Stateless command dispatcher.

    The only effect beyond formatting is the shutdown command stopping
    *run_state*.

    Parameters
    ----------
    run_state : RunState
        Process-wide run flag stopped by ``<shutdown/>``.
    loadavg : Callable[[], tuple[float, float, float]]
        Source of the 1, 5 and 15 minute load averages. May raise
        ``OSError`` when they are unavailable.

    Examples
    --------
    >>> dispatcher = Dispatcher(RunState())
    >>> dispatcher.dispatch("<echo>hello</echo>").text
    '<reply>hello</reply>'
    >>> dispatcher.dispatch("garbage").text
    '<error>garbage</error>'
    """

    def __init__(self, run_state: RunState, *, loadavg: LoadAvgFn = os.getloadavg) -> None:
        self._run_state = run_state
        self._loadavg = loadavg

    def dispatch(self, message: str) -> Reply:
        logger.debug("Incoming message: %s", message)
        command = classify(message)
        match command:
            case Command.ECHO:
                text = f"<reply>{echo_body(message)}</reply>"
            case Command.LOADAVG:
                text = self._reply_loadavg()
            case Command.SHUTDOWN:
                logger.info("Shutdown requested")
                self._run_state.stop()
                text = SHUTDOWN_ACK
            case Command.MALFORMED:
                text = f"<error>{message}</error>"
        logger.debug("Outgoing message: %s", text)
        return Reply(command=command, text=text)

    def _reply_loadavg(self) -> str:
        try:
            averages = self._loadavg()
        except OSError as exc:
            logger.warning("Load average unavailable: %s", exc)
            return LOADAVG_UNAVAILABLE
        return format_loadavg(averages)

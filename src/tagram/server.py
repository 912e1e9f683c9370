"""UDP request loop - one worker task per datagram.

The datagram endpoint's protocol is the orchestrator: every datagram it
receives is copied into a freshly allocated buffer and handed to a tracked
``asyncio.Task`` that frames it, dispatches it and sends the reply back to
the sender. Workers never wait on each other; the only state they share is
the ``RunState``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tagram.dispatch import REPLY_OVERHEAD, Dispatcher
from tagram.framing import decode, encode_reply, frame, receive_into

if TYPE_CHECKING:
    from tagram.config import ServerConfig
    from tagram.dispatch import LoadAvgFn

__all__ = ["DatagramRequest", "DatagramServer", "RunState"]

logger = logging.getLogger("tagram.server")


class RunState:
    """Process-wide run flag.

    Starts running; ``stop()`` flips it once and wakes every ``wait()``.
    Stopping an already stopped state is a no-op.

    Examples
    --------
    >>> state = RunState()
    >>> state.running
    True
    >>> state.stop()
    >>> state.running
    False
    """

    def __init__(self) -> None:
        self._stopped = asyncio.Event()

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    async def wait(self) -> None:
        """Block until the state is stopped."""
        await self._stopped.wait()


@dataclass(frozen=True)
class DatagramRequest:
    """One inbound datagram, owned by the worker that answers it.

    Parameters
    ----------
    peer : tuple[str, int]
        Sender address the reply is routed to.
    buffer : bytearray
        Private receive buffer, one byte larger than the message capacity.
    nbytes : int
        Bytes received into *buffer*. Framing happens on the worker and
        yields a separate logical length.
    """

    peer: tuple[str, int]
    buffer: bytearray
    nbytes: int


class DatagramServer:
    """Answers tagged datagrams on a bound UDP socket until shut down.

    Parameters
    ----------
    dispatcher : Dispatcher
        Command dispatcher; must share *run_state*.
    run_state : RunState
        Stopped by the shutdown command or by the caller.
    max_message_size : int
        Receive buffer capacity. Longer datagrams are truncated.
    drain_timeout : float
        Seconds in-flight workers get to finish after shutdown before they
        are cancelled.

    Examples
    --------
    >>> state = RunState()
    >>> server = DatagramServer(Dispatcher(state), state)
    >>> await server.serve(bind_socket("0.0.0.0", 9000))  # returns on <shutdown/>
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        run_state: RunState,
        *,
        max_message_size: int = 256,
        drain_timeout: float = 5.0,
    ) -> None:
        self._dispatcher = dispatcher
        self._run_state = run_state
        self._max_message_size = max_message_size
        self._drain_timeout = drain_timeout
        self._transport: asyncio.DatagramTransport | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._fatal: Exception | None = None

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        *,
        run_state: RunState | None = None,
        loadavg: LoadAvgFn = os.getloadavg,
    ) -> DatagramServer:
        state = run_state or RunState()
        return cls(
            Dispatcher(state, loadavg=loadavg),
            state,
            max_message_size=config.max_message_size,
            drain_timeout=config.drain_timeout,
        )

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def reply_capacity(self) -> int:
        return self._max_message_size + REPLY_OVERHEAD

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def serve(self, sock: socket.socket) -> None:
        """Answer datagrams on *sock* until the run state is stopped.

        In-flight workers are drained (bounded by ``drain_timeout``) and the
        transport is closed before returning.

        Raises
        ------
        OSError
            If the transport was lost with an error.
        """
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _TagramProtocol(self._schedule_datagram, self._on_connection_lost),
            sock=sock,
        )
        self._transport = transport
        host, port = transport.get_extra_info("sockname")[:2]
        logger.info("Listening on %s:%d", host, port)

        try:
            await self._run_state.wait()
        finally:
            await self._drain()
            transport.close()
            self._transport = None
            logger.info("Stopped")

        if self._fatal is not None:
            raise self._fatal

    def _schedule_datagram(self, data: bytes, peer: tuple[str, int]) -> None:
        if not self._run_state.running:
            logger.debug("Discarding %d bytes from %s after shutdown", len(data), peer)
            return

        logger.debug("Received %d bytes from %s", len(data), peer)
        buffer, nbytes = receive_into(data, self._max_message_size)
        request = DatagramRequest(peer=peer, buffer=buffer, nbytes=nbytes)

        task = asyncio.create_task(self._handle(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _handle(self, request: DatagramRequest) -> None:
        try:
            length = frame(request.buffer, request.nbytes)
            reply = self._dispatcher.dispatch(decode(request.buffer, length))
            self._send(encode_reply(reply.text, self.reply_capacity), request.peer)
        except Exception:
            logger.exception("Dropping datagram from %s", request.peer)

    def _send(self, data: bytes, peer: tuple[str, int]) -> None:
        transport = self._transport
        if transport is None or transport.is_closing():
            logger.warning("Dropping reply to %s: transport closed", peer)
            return
        try:
            transport.sendto(data, peer)
        except OSError as exc:
            logger.warning("Send to %s failed: %s", peer, exc)

    def _on_connection_lost(self, exc: Exception) -> None:
        self._fatal = exc
        self._run_state.stop()

    async def _drain(self) -> None:
        if not self._pending:
            return
        _, pending = await asyncio.wait(set(self._pending), timeout=self._drain_timeout)
        if pending:
            logger.warning(
                "Cancelling %d workers still running after %.1fs",
                len(pending),
                self._drain_timeout,
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)


class _TagramProtocol(asyncio.DatagramProtocol):
    """Datagram protocol forwarding every datagram to the server."""

    def __init__(
        self,
        schedule_datagram: Callable[[bytes, tuple[str, int]], None],
        on_connection_lost: Callable[[Exception], None],
    ) -> None:
        self.schedule_datagram = schedule_datagram
        self.on_connection_lost = on_connection_lost
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.schedule_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.error("UDP error: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc:
            logger.error("UDP connection lost: %s", exc)
            self.on_connection_lost(exc)

"""Datagram client for tagged requests.

Example:
    >>> async with TagramClient() as client:
    ...     await client.connect("127.0.0.1", 9000)
    ...     print(format_response(await client.request("<echo>hi</echo>", timeout=2.0)))
    Server response: <reply>hi</reply>
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from tagram.framing import ENCODING

__all__ = ["TagramClient", "format_response"]

logger = logging.getLogger("tagram.client")

NEWLINE_TERMINATOR = b"\n\0"


def format_response(response: str) -> str:
    return f"Server response: {response}"


class TagramClient:
    """Sends requests to a tagram server and reads its replies.

    Replies are read into a buffer of *max_message_size* bytes; anything
    beyond that is cut off.
    """

    def __init__(self, *, max_message_size: int = 256) -> None:
        self._max_message_size = max_message_size
        self._transport: asyncio.DatagramTransport | None = None
        self._responses: asyncio.Queue[bytes] = asyncio.Queue()

    async def __aenter__(self) -> TagramClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def connect(self, host: str, port: int) -> None:
        """Open a datagram endpoint aimed at *host*:*port* on a free local port."""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _ClientProtocol(self._responses),
            remote_addr=(host, port),
        )
        self._transport = transport

    async def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def send_request(self, request: str, *, newline: bool = False) -> None:
        """Send *request* without waiting for a reply.

        With *newline* the request is terminated by newline + NUL, otherwise
        it is sent as bare text.
        """
        if self._transport is None:
            msg = "Client is not connected"
            raise RuntimeError(msg)
        data = request.encode(ENCODING)
        if newline:
            data += NEWLINE_TERMINATOR
        self._transport.sendto(data)

    async def receive_response(self, timeout: float | None = None) -> str:
        """Wait for the next reply.

        Raises
        ------
        TimeoutError
            If no reply arrives within *timeout* seconds.
        """
        async with asyncio.timeout(timeout):
            data = await self._responses.get()
        return data[: self._max_message_size].decode(ENCODING).rstrip("\0")

    async def request(
        self, request: str, *, newline: bool = False, timeout: float | None = None
    ) -> str:
        self.send_request(request, newline=newline)
        return await self.receive_response(timeout)


class _ClientProtocol(asyncio.DatagramProtocol):
    def __init__(self, responses: asyncio.Queue[bytes]) -> None:
        self.responses = responses

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.responses.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        logger.error("UDP error: %s", exc)

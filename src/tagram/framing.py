"""Datagram framing for tagged text messages.

Clients use one of two line-ending conventions and never announce which:

- no terminator at all (the datagram is exactly the command text), or
- a trailing newline followed by NUL (``b"<loadavg/>\\n\\0"``).

``frame`` normalises a receive buffer to ``text + NUL`` and returns the
logical length, ``unframe`` does the same for a received ``bytes`` object.
"""

from __future__ import annotations

from tagram.errors import FramingError

__all__ = [
    "ENCODING",
    "NUL",
    "decode",
    "encode_reply",
    "frame",
    "new_buffer",
    "receive_into",
    "unframe",
]

NUL = 0
ENCODING = "latin-1"


def new_buffer(capacity: int) -> bytearray:
    """Allocate a receive buffer able to hold *capacity* bytes plus a NUL."""
    return bytearray(capacity + 1)


def frame(buffer: bytearray, nbytes: int) -> int:
    """Strip the sender's terminator from ``buffer[:nbytes]`` in place.

    Parameters
    ----------
    buffer : bytearray
        Receive buffer holding *nbytes* received bytes. Must have at least
        one spare byte beyond *nbytes*.
    nbytes : int
        Number of bytes actually received.

    Returns
    -------
    int
        Logical length. ``buffer[:length]`` is the command text and
        ``buffer[length]`` is NUL.

    Raises
    ------
    FramingError
        If *nbytes* is out of range for *buffer*.

    Examples
    --------
    >>> buf = bytearray(b"<loadavg/>\\n\\0") + bytearray(4)
    >>> frame(buf, 12)
    10
    >>> buf = bytearray(b"<loadavg/>") + bytearray(4)
    >>> frame(buf, 10)
    10
    """
    if nbytes < 0 or nbytes > len(buffer):
        msg = f"Received byte count {nbytes} outside buffer of {len(buffer)}"
        raise FramingError(msg)

    if nbytes == 0:
        if buffer:
            buffer[0] = NUL
        return 0

    if buffer[nbytes - 1] != NUL:
        if nbytes >= len(buffer):
            msg = f"No room for terminator after {nbytes} bytes"
            raise FramingError(msg)
        buffer[nbytes] = NUL
        return nbytes

    # newline + NUL; a lone NUL has nothing before it to trim
    length = max(nbytes - 2, 0)
    buffer[length] = NUL
    return length


def decode(buffer: bytearray | bytes, length: int) -> str:
    return bytes(buffer[:length]).decode(ENCODING)


def receive_into(data: bytes, capacity: int) -> tuple[bytearray, int]:
    """Copy *data* into a fresh buffer as a fixed-size receive would.

    Datagrams longer than *capacity* are truncated.

    Returns
    -------
    tuple[bytearray, int]
        The new buffer (``capacity + 1`` bytes) and the received byte count.
    """
    buffer = new_buffer(capacity)
    nbytes = min(len(data), capacity)
    buffer[:nbytes] = data[:nbytes]
    return buffer, nbytes


def unframe(data: bytes, capacity: int) -> str:
    """Receive *data* into a fresh buffer, frame it and return the message text."""
    buffer, nbytes = receive_into(data, capacity)
    return decode(buffer, frame(buffer, nbytes))


def encode_reply(text: str, capacity: int) -> bytes:
    data = text.encode(ENCODING)
    if len(data) > capacity:
        msg = f"Reply of {len(data)} bytes exceeds capacity {capacity}"
        raise FramingError(msg)
    return data

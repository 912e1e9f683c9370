"""Shared fixtures for tagram tests."""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass

import pytest

from tagram import DatagramServer, Dispatcher, RunState, bind_socket

FIXED_LOADAVG = (0.25, 0.5, 1.75)


def fixed_loadavg() -> tuple[float, float, float]:
    return FIXED_LOADAVG


@dataclass
class RunningServer:
    server: DatagramServer
    sock: socket.socket
    task: asyncio.Task[None]

    @property
    def port(self) -> int:
        return self.sock.getsockname()[1]


@pytest.fixture
def run_state() -> RunState:
    return RunState()


@pytest.fixture
def dispatcher(run_state: RunState) -> Dispatcher:
    return Dispatcher(run_state, loadavg=fixed_loadavg)


@pytest.fixture
async def running_server(run_state: RunState) -> AsyncIterator[RunningServer]:
    """A server bound to 127.0.0.1 on a free port, stopped after the test."""
    server = DatagramServer(
        Dispatcher(run_state, loadavg=fixed_loadavg),
        run_state,
        drain_timeout=1.0,
    )
    sock = bind_socket("127.0.0.1", 0)
    task = asyncio.create_task(server.serve(sock))
    await asyncio.sleep(0.05)
    yield RunningServer(server=server, sock=sock, task=task)
    run_state.stop()
    await asyncio.wait_for(task, timeout=5.0)



@pytest.fixture
def restore_tagram_logger() -> Iterator[None]:
    """Undo ``tagram.log.configure`` changes to the ``tagram`` logger."""
    logger = logging.getLogger("tagram")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate

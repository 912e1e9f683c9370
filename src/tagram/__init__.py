"""tagram - a markup-tagged request/response server over UDP.

Clients send short tagged datagrams and get a tagged reply back:

    <echo>TEXT</echo>   -> <reply>TEXT</reply>
    <loadavg/>          -> <replyLoadAvg>L1:L5:L15</replyLoadAvg>
    <shutdown/>         -> <reply>shutdown acknowledged</reply>
    anything else       -> <error>ORIGINAL</error>

Basic usage:
    import asyncio
    from tagram import DatagramServer, ServerConfig, bind_socket

    async def main():
        config = ServerConfig(port=9000)
        server = DatagramServer.from_config(config)
        await server.serve(bind_socket(config.host, config.port))

    asyncio.run(main())
"""

from tagram.client import TagramClient, format_response
from tagram.config import (
    LoggingConfig,
    ServerConfig,
    TagramConfig,
    discover_config,
    load_config,
)
from tagram.dispatch import Command, Dispatcher, Reply
from tagram.errors import ConfigError, FramingError, TagramError
from tagram.framing import frame, unframe
from tagram.netinfo import ServerInfo, banner, bind_socket
from tagram.server import DatagramRequest, DatagramServer, RunState

__all__ = [
    "Command",
    "ConfigError",
    "DatagramRequest",
    "DatagramServer",
    "Dispatcher",
    "FramingError",
    "LoggingConfig",
    "Reply",
    "RunState",
    "ServerConfig",
    "ServerInfo",
    "TagramClient",
    "TagramConfig",
    "TagramError",
    "banner",
    "bind_socket",
    "discover_config",
    "format_response",
    "frame",
    "load_config",
    "unframe",
]

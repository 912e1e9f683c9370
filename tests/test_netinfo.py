from __future__ import annotations

import socket

import pytest

from tagram import netinfo
from tagram.netinfo import ServerInfo, banner, bind_socket, interface_address


def test_bind_socket_picks_free_port() -> None:
    with bind_socket("127.0.0.1", 0) as sock:
        host, port = sock.getsockname()
        assert host == "127.0.0.1"
        assert port > 0
        assert sock.type == socket.SOCK_DGRAM


def test_bind_socket_conflict() -> None:
    with bind_socket("127.0.0.1", 0) as first:
        with pytest.raises(OSError):
            bind_socket("127.0.0.1", first.getsockname()[1])


def test_unknown_interface() -> None:
    assert interface_address("no-such-if0") is None


def test_banner_falls_back_to_bound_address(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(netinfo, "interface_address", lambda interface: None)
    with bind_socket("127.0.0.1", 0) as sock:
        info = banner(sock, "eth0")
        assert info.address == "127.0.0.1"
        assert info.port == sock.getsockname()[1]
        assert info.hostname == socket.gethostname()


def test_banner_prefers_interface_address(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(netinfo, "interface_address", lambda interface: "10.1.2.3")
    with bind_socket("127.0.0.1", 0) as sock:
        assert banner(sock, "eth0").address == "10.1.2.3"


def test_server_info_lines() -> None:
    info = ServerInfo(hostname="box", address="10.0.0.5", port=4242)
    assert info.lines() == [
        "Host Name : box",
        "Address : 10.0.0.5",
        "Port Number : 4242",
    ]

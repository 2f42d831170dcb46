"""Tests for the proxy connection, with the socket mocked out."""

from __future__ import annotations

import logging
import socket
from unittest.mock import MagicMock, patch

import pytest

from toy_relay.models.settings import create_controller, create_proxy, create_toy
from toy_relay.protocol.framing import build_frame, parse_frame
from toy_relay.protocol.messages import Message
from toy_relay.transport.relay_connection import RelayConnection


def _connected(settings=None, **kwargs) -> tuple[RelayConnection, MagicMock]:
    """Return a connection whose socket is a mock, already opened."""
    conn = RelayConnection(settings or create_controller({"tcp4": True}), **kwargs)
    sock = MagicMock()
    with patch("socket.create_connection", return_value=sock):
        conn.open()
    return conn, sock


def _sent_records(sock: MagicMock, compression: bool = False) -> list[dict]:
    return [parse_frame(c.args[0], compression) for c in sock.sendall.call_args_list]


def test_open_tcp():
    conn = RelayConnection(create_controller({"tcp4": True, "proxyUrl": "relay", "port": 4000}))
    with patch("socket.create_connection") as create:
        conn.open()
    create.assert_called_once()
    assert create.call_args.args[0] == ("relay", 4000)
    assert conn.connected


def test_open_udp():
    conn = RelayConnection(create_toy())
    sock = MagicMock()
    with patch("socket.socket", return_value=sock) as factory:
        conn.open()
    factory.assert_called_once_with(socket.AF_INET, socket.SOCK_DGRAM)
    sock.connect.assert_called_once_with(("localhost", 33330))


def test_open_failure_raises_connection_error():
    conn = RelayConnection(create_controller({"tcp4": True}))
    with patch("socket.create_connection", side_effect=OSError("refused")):
        with pytest.raises(ConnectionError, match="refused"):
            conn.open()
    assert not conn.connected


def test_proxy_settings_rejected():
    with pytest.raises(ValueError):
        RelayConnection(create_proxy())


def test_write_requires_connection():
    conn = RelayConnection(create_controller())
    with pytest.raises(ConnectionError):
        conn.write(b"x\n")


def test_register_stores_uid():
    conn, sock = _connected()
    sock.recv.return_value = build_frame({"type": "register", "seq": 1, "data": {}, "uid": "u-1"})

    assert conn.register() == "u-1"
    assert conn.uid == "u-1"

    sent = _sent_records(sock)[0]
    assert sent["type"] == "register"
    assert "uid" not in sent
    assert sent["data"] == {"channel": 1, "deviceType": "controller"}


def test_register_without_reply_fails():
    conn, sock = _connected()
    sock.recv.side_effect = socket.timeout()
    with pytest.raises(ConnectionError):
        conn.register()
    assert conn.uid is None


def test_send_before_register_fails():
    conn, _ = _connected()
    with pytest.raises(ConnectionError, match="register"):
        conn.send_command({"go": 1})


def test_send_command_uses_uid_and_increasing_seq():
    conn, sock = _connected()
    sock.recv.return_value = build_frame({"type": "register", "seq": 1, "data": {}, "uid": "u-1"})
    conn.register()

    conn.send_command({"go": 1}, sticky=True)
    conn.ping()

    register, command, ping = _sent_records(sock)
    assert command == {"type": "command", "seq": 2, "data": {"go": 1}, "uid": "u-1", "sticky": True}
    assert ping["type"] == "ping"
    assert ping["seq"] == 3
    assert register["seq"] == 1


def test_send_status_and_error_from_toy():
    conn, sock = _connected(create_toy({"tcp4": True}))
    sock.recv.return_value = build_frame({"type": "register", "seq": 1, "data": {}, "uid": "t"})
    conn.register()

    conn.send_status({"battery": 80})
    conn.send_error("stalled")

    _, status, error = _sent_records(sock)
    assert status["type"] == "status"
    assert "sticky" not in status
    assert error == {"type": "error", "seq": 3, "data": "stalled", "uid": "t"}


def test_udp_uses_send():
    conn = RelayConnection(create_toy())
    sock = MagicMock()
    sock.send.return_value = 10
    with patch("socket.socket", return_value=sock):
        conn.open()
    assert conn.write(b"0123456789") == 10
    sock.sendall.assert_not_called()


def test_compression_applies_both_ways():
    conn, sock = _connected(create_controller({"tcp4": True, "compression": True}))
    sock.recv.return_value = build_frame(
        {"type": "register", "seq": 1, "data": {}, "uid": "u"}, compression=True,
    )
    conn.register()
    assert _sent_records(sock, compression=True)[0]["type"] == "register"


def test_read_timeout_returns_none():
    conn, sock = _connected()
    sock.recv.side_effect = socket.timeout()
    assert conn.read(timeout_ms=50) is None
    sock.settimeout.assert_called_with(0.05)


def test_read_invalid_message_is_dropped_and_logged():
    log = MagicMock(spec=logging.Logger)
    conn, sock = _connected(log=log)
    sock.recv.return_value = b'{"type": "bogus"}\n'
    assert conn.read() is None
    log.warning.assert_called_once()
    assert conn.connected


def test_read_empty_buffer_closes():
    """An empty read means the proxy closed the connection."""
    conn, sock = _connected()
    sock.recv.return_value = b""
    with pytest.raises(ConnectionError, match="closed"):
        conn.read()
    assert not conn.connected
    sock.close.assert_called_once()


def test_close_is_idempotent():
    conn, sock = _connected()
    conn.close()
    conn.close()
    sock.close.assert_called_once()


def test_keepalive_due_after_interval():
    conn, sock = _connected(create_controller({"tcp4": True, "keepalive": 5}))
    sock.recv.return_value = build_frame({"type": "register", "seq": 1, "data": {}, "uid": "u"})
    with patch("time.monotonic", return_value=100.0):
        conn.register()
    with patch("time.monotonic", return_value=103.0):
        assert not conn.keepalive_due()
        assert conn.maybe_ping() is None
    with patch("time.monotonic", return_value=106.0):
        assert conn.keepalive_due()
        message = conn.maybe_ping()
    assert message is not None
    assert _sent_records(sock)[-1]["type"] == "ping"


def test_keepalive_disabled():
    conn, _ = _connected()
    conn.settings.keepalive = 0
    assert not conn.keepalive_due()


def test_register_rejects_non_register_reply():
    """A retained status arriving first must not hand over the toy's uid."""
    conn, sock = _connected()
    sock.recv.return_value = build_frame(
        {"type": "status", "seq": 9, "data": {}, "uid": "toy-uid", "sticky": True},
    )
    with pytest.raises(ConnectionError, match="register reply"):
        conn.register()
    assert conn.uid is None


def test_send_message_with_string_type():
    conn, sock = _connected()
    conn.send(Message("ping", 4, None, uid="u"))
    assert _sent_records(sock) == [{"type": "ping", "seq": 4, "data": None, "uid": "u"}]

"""TCP/UDP connection from a toy or controller to the relay proxy.

The proxy pairs devices registered on the same channel. A device registers
first, receives its ``uid`` in the reply, and then exchanges commands,
status updates and keepalive pings tagged with that uid.
"""

from __future__ import annotations

import itertools
import logging
import socket
import time
from typing import Any

from ..models.settings import DeviceType, RelaySettings
from ..protocol.errors import ProtocolError
from ..protocol.framing import build_frame, parse_frame
from ..protocol.messages import (
    Message,
    MessageType,
    build_command,
    build_error,
    build_ping,
    build_register,
    build_status,
)
from ..utils.compression import Compressor

logger = logging.getLogger(__name__)

RECV_SIZE = 65536
READ_TIMEOUT_MS = 1000
CONNECT_TIMEOUT_S = 5.0


class RelayConnection:
    """Manages the socket between a device and the proxy.

    Usage::

        conn = RelayConnection(create_controller({"tcp4": True}))
        conn.open()
        conn.register()
        conn.send_command({"speed": 10})
        record = conn.read()
        conn.close()
    """

    def __init__(
        self,
        settings: RelaySettings,
        log: logging.Logger | None = None,
        compressor: Compressor | None = None,
    ) -> None:
        if settings.device_type == DeviceType.PROXY:
            raise ValueError("RelayConnection is for toys and controllers, not the proxy")
        self._settings = settings
        self._log = log or logger
        self._compressor = compressor
        self._sock: socket.socket | None = None
        self._connected = False
        self._uid: str | None = None
        self._seq = itertools.count(1)
        self._last_write = 0.0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def settings(self) -> RelaySettings:
        return self._settings

    @property
    def uid(self) -> str | None:
        """Identifier handed out by the proxy, ``None`` until registered."""
        return self._uid

    def next_seq(self) -> int:
        return next(self._seq)

    def open(self) -> None:
        """Open a socket to the proxy using the configured transport.

        Raises:
            ConnectionError: If the socket cannot be created or connected.
        """
        address = (self._settings.proxy_url, self._settings.port)
        try:
            if self._settings.protocol == "tcp":
                sock = socket.create_connection(address, timeout=CONNECT_TIMEOUT_S)
            else:
                sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
                sock.connect(address)
        except OSError as e:
            raise ConnectionError(
                f"Could not connect to proxy at {address[0]}:{address[1]} "
                f"over {self._settings.protocol}. Last error: {e}"
            ) from e

        self._sock = sock
        self._connected = True
        self._log.info(
            "Connected to proxy %s:%d via %s",
            address[0],
            address[1],
            self._settings.protocol,
        )

    def close(self) -> None:
        """Close the socket to the proxy."""
        if not self._connected:
            return

        try:
            self._sock.close()
        except OSError as e:
            self._log.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            self._connected = False
            self._uid = None
            self._log.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write an encoded frame to the proxy.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to proxy")

        if self._settings.protocol == "tcp":
            self._sock.sendall(data)
            sent = len(data)
        else:
            sent = self._sock.send(data)
        self._last_write = time.monotonic()
        return sent

    def send(self, message: Message) -> int:
        """Encode ``message`` and write it to the proxy."""
        frame = build_frame(
            message,
            compression=self._settings.compression,
            compressor=self._compressor,
        )
        self._log.debug("Sending %s seq=%d", message.type.value, message.seq)
        return self.write(frame)

    def read(self, timeout_ms: int = READ_TIMEOUT_MS) -> dict[str, Any] | None:
        """Read and decode one buffer from the proxy.

        Args:
            timeout_ms: Read timeout in milliseconds.

        Returns:
            A validated message record, or None if the read timed out or
            the buffer was not a valid message.

        Raises:
            ConnectionError: If not connected, or the proxy closed the
                connection.
        """
        if not self._connected:
            raise ConnectionError("Not connected to proxy")

        self._sock.settimeout(timeout_ms / 1000)
        try:
            data = self._sock.recv(RECV_SIZE)
        except socket.timeout:
            return None

        try:
            record = parse_frame(
                data,
                compression=self._settings.compression,
                compressor=self._compressor,
            )
        except ProtocolError as e:
            self._log.warning("Dropping invalid message from proxy: %s", e)
            return None

        if record is None:
            self.close()
            raise ConnectionError("Remote closed the connection")

        return record

    def register(self, timeout_ms: int = READ_TIMEOUT_MS) -> str:
        """Register on the configured channel and store the assigned uid.

        Returns:
            The uid assigned by the proxy.

        Raises:
            ConnectionError: If the proxy does not answer with a register
                reply carrying a uid.
        """
        data = {
            "channel": self._settings.channel,
            "deviceType": self._settings.device_type.value,
        }
        self.send(build_register(self.next_seq(), data))
        reply = self.read(timeout_ms)
        if reply is None or reply.get("uid") is None:
            raise ConnectionError("Proxy did not accept the registration")
        # Sticky messages retained for the channel may arrive first
        if reply["type"] != MessageType.REGISTER.value:
            raise ConnectionError(
                f"Expected a register reply from proxy, got {reply['type']!r}"
            )

        self._uid = reply["uid"]
        self._log.info(
            "Registered as %s on channel %s with uid %s",
            self._settings.device_type.value,
            self._settings.channel,
            self._uid,
        )
        return self._uid

    def _require_uid(self) -> str:
        if self._uid is None:
            raise ConnectionError("Not registered with proxy. Call register() first.")
        return self._uid

    def send_command(self, data: Any, sticky: bool = False) -> Message:
        message = build_command(self.next_seq(), self._require_uid(), data, sticky)
        self.send(message)
        return message

    def send_status(self, data: Any, sticky: bool = False) -> Message:
        message = build_status(self.next_seq(), self._require_uid(), data, sticky)
        self.send(message)
        return message

    def send_error(self, data: Any) -> Message:
        message = build_error(self.next_seq(), self._require_uid(), data)
        self.send(message)
        return message

    def ping(self) -> Message:
        message = build_ping(self.next_seq(), self._require_uid())
        self.send(message)
        return message

    def keepalive_due(self) -> bool:
        """True when ``keepalive`` seconds have passed since the last write."""
        interval = self._settings.keepalive
        if not interval or not self._connected:
            return False
        return time.monotonic() - self._last_write >= interval

    def maybe_ping(self) -> Message | None:
        """Send a ping if the keepalive interval has elapsed."""
        if self._uid is None or not self.keepalive_due():
            return None
        return self.ping()

"""MCP server that drives a toy through the relay proxy as a controller.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .models.settings import create_controller
from .protocol.errors import ProtocolError
from .protocol.framing import build_frame, parse_frame
from .protocol.messages import REQUIRED_FIELDS, MessageType
from .transport.relay_connection import READ_TIMEOUT_MS, RelayConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "toy-relay",
    instructions="Controller for a toy reachable through a relay proxy",
)

# Global connection state
_connection: RelayConnection | None = None
_toy_status: dict[str, Any] | None = None


def _get_connection() -> RelayConnection:
    """Get the active proxy connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to proxy. Use the 'connect' tool first."
        )
    return _connection


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    proxy_url: str = "localhost",
    port: int = 33330,
    channel: str = "1",
    protocol: str = "udp",
    compression: bool = False,
) -> dict[str, Any]:
    """Connect to the relay proxy and register as a controller.

    Args:
        proxy_url: Host name of the proxy.
        port: Proxy port (default 33330).
        channel: Channel shared with the toy.
        protocol: "tcp" or "udp".
        compression: Compress frames; must match the proxy.
    """
    global _connection, _toy_status
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "uid": _connection.uid,
        }

    if protocol not in ("tcp", "udp"):
        return {"error": f"Protocol must be 'tcp' or 'udp', got {protocol!r}"}

    settings = create_controller({
        "proxyUrl": proxy_url,
        "port": port,
        "channel": channel,
        "tcp4": protocol == "tcp",
        "udp4": protocol == "udp",
        "compression": compression,
    })
    _toy_status = None
    _connection = RelayConnection(settings)
    _connection.open()
    try:
        uid = _connection.register()
    except ConnectionError:
        _connection.close()
        _connection = None
        raise

    return {"connected": True, "uid": uid, **settings.to_dict()}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the proxy."""
    global _connection, _toy_status
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    _toy_status = None
    return {"disconnected": True}


@mcp.tool()
def ping() -> dict[str, Any]:
    """Send a keepalive ping to the proxy."""
    conn = _get_connection()
    message = conn.ping()
    return {"sent": True, "seq": message.seq}


# ─── TOY CONTROL TOOLS ───────────────────────────────────────────────

@mcp.tool()
def send_command(data: dict[str, Any], sticky: bool = False) -> dict[str, Any]:
    """Send a command to the toy on this channel.

    Args:
        data: Command payload understood by the toy.
        sticky: Ask the proxy to retain the command for late joiners.
    """
    conn = _get_connection()
    message = conn.send_command(data, sticky=sticky)
    return {"sent": True, "seq": message.seq, "sticky": sticky}


@mcp.tool()
def poll_messages(
    max_messages: int = 10,
    timeout_ms: int = READ_TIMEOUT_MS,
) -> dict[str, Any]:
    """Read pending messages from the proxy.

    Stops at the first read that times out. The latest status message is
    remembered and can be fetched with get_toy_status.

    Args:
        max_messages: Upper bound on messages to read (1-100).
        timeout_ms: Per-read timeout in milliseconds.
    """
    global _connection, _toy_status
    if not 1 <= max_messages <= 100:
        return {"error": "max_messages must be 1-100"}

    conn = _get_connection()
    messages: list[dict[str, Any]] = []
    for _ in range(max_messages):
        try:
            record = conn.read(timeout_ms)
        except ConnectionError as e:
            logger.info("Proxy closed the connection during poll: %s", e)
            _connection = None
            return {"count": len(messages), "messages": messages, "closed": True}
        if record is None:
            break
        if record["type"] == MessageType.STATUS.value:
            _toy_status = record
        messages.append(record)

    conn.maybe_ping()
    return {"count": len(messages), "messages": messages}


@mcp.tool()
def get_toy_status() -> dict[str, Any]:
    """Return the most recent status message received from the toy."""
    _get_connection()
    if _toy_status is None:
        return {"error": "No status received yet. Use poll_messages first."}
    return {"seq": _toy_status["seq"], "data": _toy_status["data"]}


# ─── CODEC TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def encode_message(message: dict[str, Any], compression: bool = False) -> dict[str, Any]:
    """Encode a message the way it would be written to the socket.

    Args:
        message: Message fields (type, seq, data, uid, sticky).
        compression: Compress the frame.
    """
    frame = build_frame(message, compression=compression)
    return {"frame_hex": frame.hex(), "length": len(frame)}


@mcp.tool()
def decode_message(frame_hex: str, compression: bool = False) -> dict[str, Any]:
    """Decode and validate a frame captured from the wire.

    Args:
        frame_hex: Frame bytes as a hex string.
        compression: The frame was compressed.
    """
    try:
        data = bytes.fromhex(frame_hex)
    except ValueError:
        return {"error": "frame_hex is not a valid hex string"}

    try:
        record = parse_frame(data, compression=compression)
    except ProtocolError as e:
        return {"error": str(e), "kind": type(e).__name__}

    if record is None:
        return {"closed": True}
    return {"message": record}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("relay://connection/info")
def resource_connection_info() -> str:
    """Current connection settings and registration state."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "uid": _connection.uid,
        **_connection.settings.to_dict(),
    }, indent=2)


@mcp.resource("relay://protocol/message-types")
def resource_message_types() -> str:
    """Message kinds and the fields each one requires."""
    return json.dumps(
        {kind.value: list(fields) for kind, fields in REQUIRED_FIELDS.items()},
        indent=2,
    )


# ─── PROMPTS ─────────────────────────────────────────────────────────

@mcp.prompt()
def drive_toy(goal: str) -> str:
    """Plan a sequence of commands for the toy.

    Args:
        goal: What the toy should do (e.g., "drive in a square").
    """
    return f"""Connect to the proxy with the connect tool if not already connected.
Then achieve this goal: {goal}

Consider:
- Poll messages first and read the toy's latest status
- Send small commands and poll for status after each one
- Mark commands sticky only when a toy joining later must still see them
- Ping the proxy if nothing has been sent for a while

Use disconnect when finished."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

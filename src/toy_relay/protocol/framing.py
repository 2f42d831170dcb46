"""Frame builder and parser for relay messages.

Wire layout (after any compression is reversed)::

    {"type": "command", "seq": 7, "data": {...}, "uid": "abc"}\\n
    {"type": "ping", "seq": 8, "data": null, "uid": "abc"}\\n

- Each frame is one JSON object followed by a single ``\\n``.
- ``uid`` is absent only on ``register`` messages.
- ``sticky`` is present only when it is ``true``.
- With compression enabled the whole terminated text is compressed, so a
  buffer is decompressed before it is split into frames.

Stream transports may coalesce several writes into one read. The parser
keeps only the last complete frame of a buffer and discards the earlier
ones; callers relying on every frame arriving must send one frame per read.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from ..utils.compression import DEFAULT_COMPRESSOR, Compressor
from .errors import CorruptMessageError, DecodeError
from .messages import WIRE_FIELDS, Message
from .validator import validate

DELIMITER = "\n"


def clean_record(message: Message | Mapping[str, Any]) -> dict[str, Any]:
    """Copy the recognised wire fields of ``message`` into a new dict.

    Unknown keys are dropped, and ``sticky`` is kept only when it is
    exactly ``True``.
    """
    if isinstance(message, Message):
        return message.to_dict()

    record = {name: message[name] for name in WIRE_FIELDS if name in message}
    if message.get("sticky") is True:
        record["sticky"] = True
    return record


def build_frame(
    message: Message | Mapping[str, Any],
    compression: bool = False,
    compressor: Compressor | None = None,
) -> bytes:
    """Serialise a message into a newline-terminated, optionally compressed frame.

    No validation is done here; the caller is expected to supply a
    well-formed message.

    Args:
        message: A ``Message`` or a mapping with message fields.
        compression: Compress the frame before returning it.
        compressor: Compressor to use instead of the default.

    Returns:
        The bytes to write to the socket.
    """
    text = json.dumps(clean_record(message)) + DELIMITER
    if compression:
        return (compressor or DEFAULT_COMPRESSOR).compress(text)
    return text.encode("utf-8")


def last_frame(text: str) -> str:
    """Return the last complete frame of ``text``.

    If ``text`` ends with the delimiter the final frame is the segment
    before the trailing empty one, otherwise it is the last segment.
    """
    segments = text.split(DELIMITER)
    offset = 2 if segments[-1] == "" and len(segments) > 1 else 1
    return segments[-offset]


def parse_frame(
    data: bytes,
    compression: bool = False,
    compressor: Compressor | None = None,
) -> dict[str, Any] | None:
    """Parse a received buffer into a validated message record.

    Args:
        data: Bytes read from the socket.
        compression: The buffer was produced with compression enabled.
        compressor: Compressor to use instead of the default.

    Returns:
        The decoded record with every field it arrived with, or ``None``
        when ``data`` is empty, which means the remote end closed the
        connection.

    Raises:
        DecodeError: If the buffer cannot be decompressed or parsed.
        CorruptMessageError: If the frame is JSON but not an object.
        UnknownTypeError: If the message type is missing or unknown.
        MissingFieldError: If a required field is absent.
    """
    if len(data) == 0:
        return None

    try:
        if compression:
            text = (compressor or DEFAULT_COMPRESSOR).decompress(bytes(data))
        else:
            text = bytes(data).decode("utf-8")
        record = json.loads(last_frame(text))
    except Exception as e:
        raise DecodeError(bytes(data).decode("utf-8", errors="replace"), e) from e

    if not isinstance(record, dict):
        raise CorruptMessageError(record)

    return validate(record)

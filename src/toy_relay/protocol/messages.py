"""Message kinds, the required-field table, and message builders.

Every message carries ``type``, ``seq`` and ``data``. All kinds except
``register`` also carry the ``uid`` handed out at registration, and any
message may be flagged ``sticky`` for retained delivery by the proxy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class MessageType(str, Enum):
    """Message kinds understood by every role."""

    REGISTER = "register"
    STATUS = "status"
    COMMAND = "command"
    PING = "ping"
    ERROR = "error"


# Fields copied onto the wire by the encoder; ``sticky`` is handled apart
WIRE_FIELDS: tuple[str, ...] = ("type", "seq", "data", "uid")

REQUIRED_FIELDS: dict[MessageType, tuple[str, ...]] = {
    MessageType.REGISTER: ("type", "seq", "data"),
    MessageType.STATUS: ("type", "seq", "data", "uid"),
    MessageType.COMMAND: ("type", "seq", "data", "uid"),
    MessageType.PING: ("type", "seq", "data", "uid"),
    MessageType.ERROR: ("type", "seq", "data", "uid"),
}


@dataclass(frozen=True)
class Message:
    """An outbound or decoded message.

    ``uid`` is ``None`` only on ``register`` messages. ``sticky`` defaults to
    ``False`` and is left off the wire unless it is ``True``.
    """

    type: MessageType
    seq: int
    data: Any = None
    uid: str | None = None
    sticky: bool = False

    def __post_init__(self) -> None:
        # Accept the wire name as well as the enum member
        object.__setattr__(self, "type", MessageType(self.type))

    def to_dict(self) -> dict[str, Any]:
        """Return the wire record for this message."""
        record: dict[str, Any] = {
            "type": self.type.value,
            "seq": self.seq,
            "data": self.data,
        }
        if self.uid is not None:
            record["uid"] = self.uid
        if self.sticky is True:
            record["sticky"] = True
        return record

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> Message:
        """Build a Message from a record returned by ``parse_frame``.

        The record is expected to be validated already; unrecognised keys
        are ignored.
        """
        return cls(
            type=MessageType(record["type"]),
            seq=record["seq"],
            data=record["data"],
            uid=record.get("uid"),
            sticky=record.get("sticky") is True,
        )


def build_register(seq: int, data: Any) -> Message:
    """Build a register message. Devices have no uid until registered."""
    return Message(MessageType.REGISTER, seq, data)


def build_status(seq: int, uid: str, data: Any, sticky: bool = False) -> Message:
    """Build a status message, typically sent by the toy."""
    return Message(MessageType.STATUS, seq, data, uid=uid, sticky=sticky)


def build_command(seq: int, uid: str, data: Any, sticky: bool = False) -> Message:
    """Build a command message, typically sent by the controller."""
    return Message(MessageType.COMMAND, seq, data, uid=uid, sticky=sticky)


def build_ping(seq: int, uid: str, data: Any = None) -> Message:
    """Build a keepalive ping."""
    return Message(MessageType.PING, seq, data, uid=uid)


def build_error(seq: int, uid: str, data: Any) -> Message:
    """Build an error report."""
    return Message(MessageType.ERROR, seq, data, uid=uid)

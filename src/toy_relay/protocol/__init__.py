"""Protocol layer: message framing, compression, message kinds, and validation."""

from .errors import (
    CorruptMessageError,
    DecodeError,
    MissingFieldError,
    ProtocolError,
    UnknownTypeError,
    ValidationError,
)
from .framing import build_frame, last_frame, parse_frame
from .messages import Message, MessageType
from .validator import validate

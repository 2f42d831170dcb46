"""Exceptions raised by the frame codec and message validator."""

from __future__ import annotations

from typing import Any


class ProtocolError(ValueError):
    """Base class for every error raised while decoding a frame."""


class DecodeError(ProtocolError):
    """The buffer could not be decompressed or parsed as JSON.

    Attributes:
        raw: String form of the buffer that failed, for diagnostics.
        cause: The underlying decompression or parse exception.
    """

    def __init__(self, raw: str, cause: BaseException) -> None:
        self.raw = raw
        self.cause = cause
        super().__init__(
            f"There was an error parsing the incoming message: {cause} {raw!r}"
        )


class ValidationError(ProtocolError):
    """A parsed frame does not satisfy the message schema."""


class CorruptMessageError(ValidationError):
    """The frame parsed, but not to a JSON object."""

    def __init__(self, value: Any = None) -> None:
        self.value = value
        super().__init__(
            f"The incoming message is corrupt: expected an object, "
            f"got {type(value).__name__}"
        )


class UnknownTypeError(ValidationError):
    """The ``type`` field is absent or not a known message kind."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"An invalid incoming message arrived: unknown type {value!r}")


class MissingFieldError(ValidationError):
    """A field required for the message kind is absent."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(
            f"The message that arrived is not valid, it does not contain "
            f"a property: {field}"
        )

"""Schema enforcement for decoded message records."""

from __future__ import annotations

from typing import Any

from .errors import MissingFieldError, UnknownTypeError
from .messages import REQUIRED_FIELDS, MessageType


def required_fields(message_type: Any) -> tuple[str, ...]:
    """Return the fields required for ``message_type``.

    Raises:
        UnknownTypeError: If ``message_type`` is not a known kind.
    """
    try:
        return REQUIRED_FIELDS[MessageType(message_type)]
    except (ValueError, TypeError):
        raise UnknownTypeError(message_type) from None


def validate(record: dict[str, Any]) -> dict[str, Any]:
    """Check that ``record`` is a well-formed message.

    Fields are checked by presence, so ``0``, ``""`` and ``None`` all count
    as present.

    Args:
        record: A decoded JSON object.

    Returns:
        ``record`` itself, unchanged.

    Raises:
        UnknownTypeError: If ``type`` is missing or not a known kind.
        MissingFieldError: Naming the first required field that is absent.
    """
    for field in required_fields(record.get("type")):
        if field not in record:
            raise MissingFieldError(field)
    return record

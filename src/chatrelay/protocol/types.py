"""Core types, constants, and utility functions shared by the relay."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from chatrelay.protocol.errors import ValidationError

# Default message body cap (characters, after trimming)
MAX_MESSAGE_LENGTH = 500

# Default per-channel buffer capacity
MAX_CHANNEL_MESSAGES = 150

# Default and hard ceiling for fetch page size
DEFAULT_FETCH_LIMIT = 50
MAX_FETCH_LIMIT = 100

# Sentinel sender id when the caller supplies none
ANONYMOUS_SENDER = "anonymous"

# Longest accepted channel id (characters, after trimming)
MAX_CHANNEL_ID_LENGTH = 128


class ChannelClass(str, Enum):
    """Channel partition classes.

    Using ``str, Enum`` so that ``ChannelClass.GLOBAL == "global"`` is True.
    """

    GLOBAL = "global"
    LOCAL = "local"


def parse_channel_class(value: Any) -> ChannelClass:
    """Return the :class:`ChannelClass` for *value* (case-insensitive).

    Raises :class:`ValidationError` for anything that is not a known class.
    """
    if isinstance(value, ChannelClass):
        return value
    if isinstance(value, str):
        try:
            return ChannelClass(value.strip().lower())
        except ValueError:
            pass
    raise ValidationError(f"Unknown channel class: {value!r}")


def normalize_channel_id(value: Any) -> str | None:
    """Coerce a channel identifier to its canonical string form.

    Numeric ids arriving as ``42``, ``42.0`` or ``" 42 "`` all become
    ``"42"``.  Only ASCII decimal strings count as numeric; anything else
    (``"²"``, ``"srv-1"``) is kept verbatim.  Empty values normalize to
    ``None``.

    Raises :class:`ValidationError` when the id is longer than
    :data:`MAX_CHANNEL_ID_LENGTH` characters.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        if abs(value) >= 10**MAX_CHANNEL_ID_LENGTH:
            raise ValidationError("channelId is too long")
        return str(value)
    if isinstance(value, float):
        text = str(int(value)) if value.is_integer() else repr(value)
    else:
        text = str(value).strip()
        if not text:
            return None
    if len(text) > MAX_CHANNEL_ID_LENGTH:
        raise ValidationError("channelId is too long")
    digits = text[1:] if text.startswith("-") else text
    if digits.isascii() and digits.isdecimal():
        return str(int(text))
    return text


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000

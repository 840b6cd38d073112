"""chatrelay protocol -- types and errors shared by the relay and callers.

Public API re-exports for ``chatrelay.protocol``.
"""

from chatrelay.protocol.types import (
    ANONYMOUS_SENDER,
    DEFAULT_FETCH_LIMIT,
    MAX_CHANNEL_ID_LENGTH,
    MAX_CHANNEL_MESSAGES,
    MAX_FETCH_LIMIT,
    MAX_MESSAGE_LENGTH,
    ChannelClass,
    normalize_channel_id,
    now_ms,
    parse_channel_class,
)

from chatrelay.protocol.errors import (
    ChatRelayError,
    InternalFault,
    RateLimitExceeded,
    ValidationError,
)

__all__ = [
    "ANONYMOUS_SENDER",
    "DEFAULT_FETCH_LIMIT",
    "MAX_CHANNEL_ID_LENGTH",
    "MAX_CHANNEL_MESSAGES",
    "MAX_FETCH_LIMIT",
    "MAX_MESSAGE_LENGTH",
    "ChannelClass",
    "normalize_channel_id",
    "now_ms",
    "parse_channel_class",
    "ChatRelayError",
    "InternalFault",
    "RateLimitExceeded",
    "ValidationError",
]

"""chatrelay exception hierarchy.

All relay-specific exceptions inherit from :class:`ChatRelayError`.

Querying an unknown local channel is not an error: it yields an empty
result, so there is no "not found" exception here.
"""

from __future__ import annotations


class ChatRelayError(Exception):
    """Base exception for all chatrelay errors."""


class ValidationError(ChatRelayError):
    """Raised when caller input is missing, malformed, or too long.

    Always client-correctable; never retried by the server.
    """


class RateLimitExceeded(ChatRelayError):
    """Raised when a caller exceeds a limiter budget.

    Carries no per-key detail beyond "try later".
    """


class InternalFault(ChatRelayError):
    """Raised when the store layer fails unexpectedly.

    The message is generic by construction and safe to return to callers.
    """

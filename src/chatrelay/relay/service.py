"""Relay service: validates submissions, stamps messages, answers polls.

Validation always completes before the store is touched, so a rejected
request leaves no trace.
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import Any, Callable

from chatrelay.protocol.errors import InternalFault, ValidationError
from chatrelay.protocol.types import (
    ANONYMOUS_SENDER,
    DEFAULT_FETCH_LIMIT,
    MAX_FETCH_LIMIT,
    MAX_MESSAGE_LENGTH,
    ChannelClass,
    normalize_channel_id,
    now_ms,
    parse_channel_class,
)
from chatrelay.relay.store import ChannelStore, Message

logger = logging.getLogger(__name__)


def sanitize_body(text: str) -> str:
    """Escape the two characters that enable markup injection."""
    return text.replace("<", "&lt;").replace(">", "&gt;")


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class RelayService:
    """Orchestrates :class:`ChannelStore` access for send, fetch and init.

    Parameters
    ----------
    store:
        The channel store for this server lifetime.
    default_channel_class:
        Class used when a caller omits one.  Fixed per deployment.
    max_message_length:
        Body cap in characters, measured after trimming.
    sanitize_html:
        Escape ``<`` and ``>`` in stored bodies.
    default_limit, max_limit:
        Fetch page size when omitted, and the hard ceiling.
    clock:
        Wall clock in ms since epoch; stamped values are made strictly
        increasing.
    """

    def __init__(
        self,
        store: ChannelStore,
        default_channel_class: ChannelClass = ChannelClass.GLOBAL,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        sanitize_html: bool = True,
        default_limit: int = DEFAULT_FETCH_LIMIT,
        max_limit: int = MAX_FETCH_LIMIT,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._default_channel_class = default_channel_class
        self._max_message_length = max_message_length
        self._sanitize_html = sanitize_html
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._clock = clock
        self._last_stamp = 0
        self._stamp_lock = threading.Lock()

    @property
    def default_channel_class(self) -> ChannelClass:
        return self._default_channel_class

    # -- operations --------------------------------------------------------

    def send(
        self,
        body: Any,
        sender_id: Any = None,
        username: Any = None,
        display_name: Any = None,
        channel_class: Any = None,
        channel_id: Any = None,
    ) -> Message:
        """Validate, stamp and store a message.  Returns the stored message.

        Raises :class:`ValidationError` on bad input (nothing is stored) and
        :class:`InternalFault` if the store itself fails.
        """
        if not isinstance(body, str) or not body.strip():
            raise ValidationError("Missing required fields")
        text = body.strip()
        if len(text) > self._max_message_length:
            raise ValidationError(
                f"Message too long (max {self._max_message_length} characters)"
            )
        name = _optional_str(username)
        if name is None:
            raise ValidationError("Missing required fields")
        cls, cid = self._resolve_channel(channel_class, channel_id)

        created_at = self._next_stamp()
        message = Message(
            id=f"{created_at}-{secrets.token_hex(8)}",
            sender_id=_optional_str(sender_id) or ANONYMOUS_SENDER,
            username=name,
            display_name=_optional_str(display_name) or name,
            body=sanitize_body(text) if self._sanitize_html else text,
            channel_class=cls,
            channel_id=cid,
            created_at=created_at,
        )
        try:
            self._store.append(cls, cid, message)
        except Exception as exc:
            logger.error("Message store append failed (%s)", type(exc).__name__)
            raise InternalFault("Internal server error") from exc
        logger.debug("Stored %s message %s", cls.value, message.id)
        return message

    def fetch(
        self,
        channel_class: Any = None,
        channel_id: Any = None,
        after: Any = None,
        limit: Any = None,
    ) -> list[Message]:
        """Return messages newer than *after* (default 0), oldest first.

        *limit* defaults to the configured page size and is clamped to the
        hard ceiling.  An unknown local channel yields ``[]``.
        """
        cls, cid = self._resolve_channel(channel_class, channel_id)
        after_ts = self._coerce_int(after, "after", default=0)
        page = self._coerce_int(limit, "limit", default=self._default_limit)
        if page < 1:
            raise ValidationError("limit must be a positive integer")
        return self._store.query(cls, cid, after_ts, min(page, self._max_limit))

    def init_session(self, user_id: Any, username: Any) -> str:
        """Acknowledge a client session.  Returns the normalized user id.

        Records nothing; only the username is logged.
        """
        uid = _optional_str(user_id)
        name = _optional_str(username)
        if uid is None or name is None:
            raise ValidationError("Missing userId or username")
        logger.info("Session init for user: %s", name)
        return uid

    # -- helpers -----------------------------------------------------------

    def _resolve_channel(self, channel_class: Any, channel_id: Any) -> tuple[ChannelClass, str | None]:
        if channel_class is None or (isinstance(channel_class, str) and not channel_class.strip()):
            cls = self._default_channel_class
        else:
            cls = parse_channel_class(channel_class)
        if cls == ChannelClass.GLOBAL:
            return cls, None
        cid = normalize_channel_id(channel_id)
        if cid is None:
            raise ValidationError("channelId is required for local channels")
        return cls, cid

    @staticmethod
    def _coerce_int(value: Any, name: str, default: int) -> int:
        if value is None or value == "":
            return default
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer") from None

    def _next_stamp(self) -> int:
        with self._stamp_lock:
            stamp = max(self._clock(), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

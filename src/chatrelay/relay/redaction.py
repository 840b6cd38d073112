"""Caller identity redaction.

The relay never stores or logs a caller's network address.  Rate limiting
buckets on :func:`redact_address`, a salted SHA-256 digest, and every log
handler carries a :class:`RedactingFilter` that masks IPv4 literals as a
backstop for any address that slips into a message anyway.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Mapping
from typing import Any

IPV4_PATTERN = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")
REDACTED_IP = "[IP-REDACTED]"

_TRACEBACK_FORMATTER = logging.Formatter()


def redact_address(raw_address: str, salt: str) -> str:
    """Return a stable, one-way key for *raw_address*.

    Same address and salt always give the same 64-char hex digest.
    """
    return hashlib.sha256((raw_address + salt).encode("utf-8")).hexdigest()


def mask_ipv4(text: str) -> str:
    """Replace every IPv4 literal in *text* with ``[IP-REDACTED]``."""
    return IPV4_PATTERN.sub(REDACTED_IP, text)


def _mask_arg(value: Any) -> Any:
    if isinstance(value, str):
        return mask_ipv4(value)
    if isinstance(value, (int, float)) or value is None:
        return value
    # Anything else is rendered with %s/%r; mask its text form
    text = str(value)
    masked = mask_ipv4(text)
    return value if masked == text else masked


class RedactingFilter(logging.Filter):
    """Logging filter that masks IPv4 literals in a record before it is formatted.

    ``msg`` and each of ``args`` are masked in place, keeping the shape of
    ``args`` (tuple or mapping) so formatters that read them positionally
    still work.  A traceback attached through ``exc_info`` is rendered here
    and stored masked in ``exc_text``, which formatters reuse as is.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_ipv4(record.msg)
        if isinstance(record.args, Mapping):
            record.args = {key: _mask_arg(val) for key, val in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(_mask_arg(arg) for arg in record.args)
        if record.exc_info and not record.exc_text:
            record.exc_text = _TRACEBACK_FORMATTER.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = mask_ipv4(record.exc_text)
        if record.stack_info:
            record.stack_info = mask_ipv4(record.stack_info)
        return True


def install_redaction_filter(*logger_names: str) -> RedactingFilter:
    """Attach one :class:`RedactingFilter` to the handlers of the given loggers.

    The root logger is always included.  Handler-level filters see records
    propagated from every child logger, which logger-level filters do not.
    Installing twice is a no-op for handlers that already carry a filter.
    """
    redacting = RedactingFilter()
    loggers = [logging.getLogger()] + [logging.getLogger(n) for n in logger_names]
    for log in loggers:
        for handler in log.handlers:
            if not any(isinstance(f, RedactingFilter) for f in handler.filters):
                handler.addFilter(redacting)
    return redacting

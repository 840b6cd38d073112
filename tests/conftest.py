"""Shared test fixtures for chatrelay."""

from __future__ import annotations

import pytest

from chatrelay.protocol import ChannelClass
from chatrelay.relay.store import Message


class FakeClock:
    """Manually advanced clock for window and idle-timeout tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_message(
    created_at: int,
    channel_class: ChannelClass = ChannelClass.GLOBAL,
    channel_id: str | None = None,
    username: str = "alice",
    body: str = "hi",
) -> Message:
    """Build a stored-shape message directly (bypasses the service)."""
    return Message(
        id=f"{created_at}-test",
        sender_id="u-" + username,
        username=username,
        display_name=username,
        body=body,
        channel_class=channel_class,
        channel_id=channel_id,
        created_at=created_at,
    )


@pytest.fixture()
def message_factory():
    """Fixture that returns the make_message helper function."""
    return make_message

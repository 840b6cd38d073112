"""Shared fixtures for chat relay HTTP tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chatrelay.relay.app import create_app


@pytest.fixture()
def make_client(monkeypatch):
    """Return a factory building a TestClient from ``CHATRELAY_*`` overrides.

    Usage: ``with make_client(SEND_RATE_LIMIT="3") as c: ...``
    """

    def _make(**env: str) -> TestClient:
        for name, value in env.items():
            monkeypatch.setenv(f"CHATRELAY_{name}", value)
        return TestClient(create_app())

    return _make


@pytest.fixture()
def app(monkeypatch):
    """Create a relay app with the default deployment profile."""
    monkeypatch.setenv("CHATRELAY_DEFAULT_CHANNEL_CLASS", "global")
    return create_app()


@pytest.fixture()
def client(app):
    """Return a TestClient for the relay app with lifespan triggered."""
    with TestClient(app) as c:
        yield c


def _send(client, username="alice", message="hi", **extra):
    """POST /api/v1/chat/send with camelCase fields."""
    payload = {"username": username, "message": message, **extra}
    return client.post("/api/v1/chat/send", json=payload)


@pytest.fixture()
def send():
    """Fixture that returns the send helper function."""
    return _send

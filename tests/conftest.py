from __future__ import annotations

import pytest

from sigd.config import HubRuntimeConfig
from sigd.service import HubService

from fakes import FakeConn, FakeTransport


@pytest.fixture
def hub() -> HubService:
    return HubService(HubRuntimeConfig(), transport=FakeTransport())


@pytest.fixture
def connect(hub: HubService):
    """Register a fake connection and discard its your-id message."""

    def _connect(name: str) -> tuple[FakeConn, str]:
        conn = FakeConn(name)
        identity = hub.on_connect(conn)
        conn.sent.clear()
        return conn, identity

    return _connect

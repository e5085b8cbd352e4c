"""
Live-server fixtures for the integration tests.

The stub trade application runs on an ephemeral localhost port, so the
journey talks to it over real HTTP with a plain ``requests.Session``:
redirects, cookies and form encoding all go through the same code paths
as a load run.

Key Concepts Demonstrated:
- Factory fixtures for per-test server configuration
- Live server in a background thread, shut down on teardown
- Configuration objects pointed at the live server
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import pytest
import requests
from flask import Flask

from config import HarnessConfig
from tests.stubs.trade_app import StubState, create_app, serve

POOL_USERS = [f"k6-perf-user-{n}@example.com" for n in range(1, 4)]


@dataclass
class RunningStub:
    """A started stub application and where to reach it."""

    app: Flask
    base_url: str

    @property
    def state(self) -> StubState:
        return self.app.config["STATE"]

    @property
    def config(self) -> HarnessConfig:
        """Harness configuration with both base URLs pointing at the stub."""
        return HarnessConfig(target_url=self.base_url, identity_stub_url=self.base_url, request_timeout=10)


@pytest.fixture
def start_stub() -> Iterator:
    """
    Factory fixture starting stub servers.

    Call it with ``users`` and any ``app.config`` overrides; every server
    started is shut down when the test finishes.
    """
    servers = []

    def _start(users: list[str] | None = None, **overrides) -> RunningStub:
        app = create_app(users=POOL_USERS if users is None else users, **overrides)
        server, base_url = serve(app)
        servers.append(server)
        return RunningStub(app=app, base_url=base_url)

    yield _start

    for server in servers:
        server.shutdown()


@pytest.fixture
def stub(start_stub) -> RunningStub:
    """A stub with the default user pool and no injected failures."""
    return start_stub()


@pytest.fixture
def http_session() -> Iterator[requests.Session]:
    with requests.Session() as session:
        yield session

"""
Pytest configuration and shared fakes.

Unit tests never touch the network or a real browser: page fetches go through
``httpx.MockTransport`` and the sandbox is replaced by ``FakeSandboxRuntime``.

The live integration test reads its player page from ``TEST_URL_PLAYER``.
Locally, add it to your .env file. For CI/CD, configure GitHub Secrets.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
import pytest
from dotenv import load_dotenv

from m3u8_extractor.configs import ExtractorConfig
from m3u8_extractor.extractors.base import SandboxExecutionError
from m3u8_extractor.extractors.player import PlayerPageExtractor

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


class FakeSandboxSession:
    """Reveals its values only after ``reveal_after`` inspections."""

    def __init__(
        self,
        capture: Optional[str] = None,
        player_config: Optional[str] = None,
        live_markup: str = "",
        reveal_after: int = 0,
        broken: bool = False,
        hang: bool = False,
    ):
        self.capture = capture
        self.player_config = player_config
        self.live_markup = live_markup
        self.reveal_after = reveal_after
        self.broken = broken
        self.hang = hang
        self.inspections = 0

    def _revealed(self) -> bool:
        return self.inspections > self.reveal_after

    async def read_capture(self):
        self.inspections += 1
        if self.hang:
            # Mirrors page.evaluate against a page spinning on its main thread.
            await asyncio.Event().wait()
        if self.broken:
            raise SandboxExecutionError("Execution context was destroyed")
        return self.capture if self._revealed() else None

    async def read_player_config(self):
        return self.player_config if self._revealed() else None

    async def read_live_markup(self):
        return self.live_markup if self._revealed() else "<head></head><body></body>"

    async def wait_for_capture(self, timeout: float) -> bool:
        await asyncio.sleep(timeout)
        return False


class FakeSandboxRuntime:
    def __init__(self, session: Optional[FakeSandboxSession] = None, fail_on_open: bool = False):
        self.session = session or FakeSandboxSession()
        self.fail_on_open = fail_on_open
        self.sessions_built = 0
        self.open_sessions = 0
        self.markups = []
        self.load_timeouts = []

    @asynccontextmanager
    async def open_session(self, markup: str, base_url: str, load_timeout: Optional[float] = None):
        self.sessions_built += 1
        self.load_timeouts.append(load_timeout)
        self.open_sessions += 1
        self.markups.append(markup)
        try:
            if self.fail_on_open:
                raise SandboxExecutionError(f"Failed to build sandbox for {base_url}")
            yield self.session
        finally:
            self.open_sessions -= 1


@pytest.fixture
def fake_sandbox():
    """Factory fixture building a ``FakeSandboxRuntime`` around one ``FakeSandboxSession``."""

    def _make(fail_on_open: bool = False, **session_kwargs) -> FakeSandboxRuntime:
        return FakeSandboxRuntime(FakeSandboxSession(**session_kwargs), fail_on_open=fail_on_open)

    return _make


@pytest.fixture
def extractor_config():
    return ExtractorConfig(user_agent="test-agent", timeout=1.0, poll_iterations=5, poll_interval=0.01)


@pytest.fixture
def serve_html(monkeypatch):
    """
    Factory fixture routing every page fetch to ``handler``.

    Usage:
        def test_something(serve_html):
            requests = serve_html(lambda request: httpx.Response(200, text="<html></html>"))
    """

    def _serve(handler):
        seen = []

        def _record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def _client_factory(**kwargs):
            return httpx.AsyncClient(transport=httpx.MockTransport(_record), follow_redirects=True, **kwargs)

        monkeypatch.setattr("m3u8_extractor.extractors.base.create_httpx_client", _client_factory)
        return seen

    return _serve


@pytest.fixture
def make_extractor(extractor_config):
    def _make(sandbox: FakeSandboxRuntime, config: Optional[ExtractorConfig] = None) -> PlayerPageExtractor:
        return PlayerPageExtractor({}, config=config or extractor_config, sandbox=sandbox)

    return _make


@pytest.fixture
def get_test_url():
    def _get_url(name: str) -> str | None:
        return os.environ.get(f"TEST_URL_{name.upper()}")

    return _get_url

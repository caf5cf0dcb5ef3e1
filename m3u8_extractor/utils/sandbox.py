"""
Isolated script execution for player pages.

Each extraction gets its own Chromium browser context. The context is
instrumented before any page script runs: console output is discarded and a
stand-in ``jwplayer()`` records the manifest URL handed to ``setup()``.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Route,
    async_playwright,
)

from m3u8_extractor.configs import settings
from m3u8_extractor.const import CAPTURE_BINDING, CAPTURE_SLOT, CONSOLE_METHODS, PLAYER_CONFIG_GLOBAL
from m3u8_extractor.extractors.base import SandboxExecutionError

logger = logging.getLogger(__name__)

INSTRUMENTATION_SCRIPT = """
(() => {
  const slot = "%(slot)s";
  const binding = "%(binding)s";
  const noop = () => {};
  window[slot] = null;

  %(console_methods)s.forEach((level) => {
    try { window.console[level] = noop; } catch (e) {}
  });

  const report = (value) => {
    window[slot] = value;
    try {
      if (typeof window[binding] === "function") {
        Promise.resolve(window[binding](value)).catch(noop);
      }
    } catch (e) {}
  };

  const pickManifest = (cfg) => {
    try {
      if (!cfg || typeof cfg !== "object") return null;
      if (typeof cfg.file === "string" && cfg.file.includes(".m3u8")) return cfg.file;
      const first = Array.isArray(cfg.playlist) ? cfg.playlist[0] : null;
      if (first && first.file) return String(first.file);
    } catch (e) {}
    return null;
  };

  const instance = {
    setup(cfg) {
      const file = pickManifest(cfg);
      if (file) report(file);
      return instance;
    },
    on() { return instance; },
  };
  window.jwplayer = () => instance;
})();
""" % {
    "slot": CAPTURE_SLOT,
    "binding": CAPTURE_BINDING,
    "console_methods": str(CONSOLE_METHODS).replace("'", '"'),
}

READ_CAPTURE_JS = f"() => window.{CAPTURE_SLOT} ? String(window.{CAPTURE_SLOT}) : null"
READ_PLAYER_CONFIG_JS = f"""() => {{
  const cfg = window.{PLAYER_CONFIG_GLOBAL};
  return cfg && cfg.file ? String(cfg.file) : null;
}}"""
READ_LIVE_MARKUP_JS = "() => document.documentElement ? document.documentElement.innerHTML : ''"


class SandboxSession:
    """One instrumented document bound to one extraction."""

    def __init__(self, context: BrowserContext):
        self.context = context
        self.page: Optional[Page] = None
        self.captured = asyncio.Event()
        self.captured_url: Optional[str] = None
        self._document_served = False

    def _on_report(self, value) -> None:
        if isinstance(value, str) and value and self.captured_url is None:
            self.captured_url = value
            self.captured.set()

    async def load(self, markup: str, base_url: str, blocked_resources: Iterable[str], timeout: float):
        """Serve ``markup`` as the document at ``base_url`` and start running its scripts."""
        blocked = set(blocked_resources)

        async def _route(route: Route):
            request = route.request
            if request.resource_type == "document":
                if not self._document_served and request.frame.parent_frame is None:
                    self._document_served = True
                    await route.fulfill(status=200, content_type="text/html; charset=utf-8", body=markup)
                else:
                    await route.abort()
            elif request.resource_type in blocked:
                await route.abort()
            else:
                await route.continue_()

        await self.context.expose_function(CAPTURE_BINDING, self._on_report)
        await self.context.add_init_script(INSTRUMENTATION_SCRIPT)
        await self.context.route("**/*", _route)

        self.page = await self.context.new_page()
        self.page.on("pageerror", lambda error: logger.debug("Sandboxed script error on %s: %s", base_url, error))
        await self.page.goto(base_url, wait_until="commit", timeout=timeout * 1000)

    async def _evaluate(self, expression: str):
        if self.page is None:
            raise SandboxExecutionError("Sandbox page is not loaded")
        try:
            return await self.page.evaluate(expression)
        except PlaywrightError as e:
            raise SandboxExecutionError(f"Sandbox evaluation failed: {e}") from e

    async def read_capture(self) -> Optional[str]:
        if self.captured_url:
            return self.captured_url
        return await self._evaluate(READ_CAPTURE_JS)

    async def read_player_config(self) -> Optional[str]:
        return await self._evaluate(READ_PLAYER_CONFIG_JS)

    async def read_live_markup(self) -> str:
        return await self._evaluate(READ_LIVE_MARKUP_JS) or ""

    async def wait_for_capture(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early when the stand-in player reports."""
        try:
            await asyncio.wait_for(self.captured.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class SandboxRuntime:
    """
    Owns the shared headless browser and hands out one context per extraction.

    ``open_sessions`` is the number of sessions not yet closed; it returns to
    zero once every ``open_session`` block has exited.
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        blocked_resources: Optional[Iterable[str]] = None,
        load_timeout: Optional[float] = None,
    ):
        self.headless = headless
        self.user_agent = user_agent or settings.user_agent
        if blocked_resources is None:
            blocked_resources = settings.sandbox_blocked_resources
        self.blocked_resources = list(blocked_resources)
        self.load_timeout = load_timeout or settings.extract_timeout
        self.open_sessions = 0
        self.sessions_built = 0
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
            except PlaywrightError as e:
                raise SandboxExecutionError(f"Failed to launch sandbox browser: {e}") from e
            logger.info("Sandbox browser started (headless=%s)", self.headless)
            return self._browser

    @asynccontextmanager
    async def open_session(
        self, markup: str, base_url: str, load_timeout: Optional[float] = None
    ) -> AsyncIterator[SandboxSession]:
        """Build a sandbox for ``markup`` rooted at ``base_url``; always closed on exit."""
        context: Optional[BrowserContext] = None
        self.open_sessions += 1
        self.sessions_built += 1
        try:
            browser = await self._ensure_browser()
            try:
                context = await browser.new_context(
                    user_agent=self.user_agent,
                    java_script_enabled=True,
                    service_workers="block",
                )
                session = SandboxSession(context)
                await session.load(markup, base_url, self.blocked_resources, load_timeout or self.load_timeout)
            except PlaywrightError as e:
                raise SandboxExecutionError(f"Failed to build sandbox for {base_url}: {e}") from e
            yield session
        finally:
            self.open_sessions -= 1
            if context is not None:
                try:
                    await context.close()
                except PlaywrightError as e:
                    logger.debug("Error closing sandbox context for %s: %s", base_url, e)

    async def close(self):
        """Shut down the shared browser."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.debug("Error closing sandbox browser: %s", e)
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = None
            self._playwright = None
            logger.info("Sandbox browser stopped")


_runtime: Optional[SandboxRuntime] = None


def get_sandbox_runtime() -> SandboxRuntime:
    """Return the process-wide sandbox runtime, creating it on first use."""
    global _runtime
    if _runtime is None:
        _runtime = SandboxRuntime(
            headless=settings.sandbox_headless,
            user_agent=settings.user_agent,
            blocked_resources=settings.sandbox_blocked_resources,
            load_timeout=settings.extract_timeout,
        )
    return _runtime


async def shutdown_sandbox_runtime():
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None

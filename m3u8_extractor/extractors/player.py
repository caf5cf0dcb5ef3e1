import asyncio
import logging
import time
from typing import Optional, Tuple

from m3u8_extractor.configs import ExtractorConfig
from m3u8_extractor.const import (
    INSPECT_TIMEOUT_FLOOR,
    STRATEGY_LIVE_DOM,
    STRATEGY_PLAYER_CONFIG,
    STRATEGY_PLAYER_SETUP,
    STRATEGY_STATIC,
)
from m3u8_extractor.extractors.base import BaseExtractor, SandboxExecutionError
from m3u8_extractor.schemas import ExtractionResult
from m3u8_extractor.utils.markup import find_manifest_url, normalize_manifest_url, sanitize_markup, scan_manifest_url
from m3u8_extractor.utils.sandbox import SandboxRuntime, SandboxSession, get_sandbox_runtime

logger = logging.getLogger(__name__)


class PlayerPageExtractor(BaseExtractor):
    """
    Recover the HLS manifest URL of a third-party video player page.

    The page markup is scanned first. When it holds no manifest URL, the page
    scripts are run in a sandbox and its state is polled until the player
    setup, the ``player_config`` global or the live document reveals one.
    """

    def __init__(
        self,
        request_headers: Optional[dict] = None,
        config: Optional[ExtractorConfig] = None,
        sandbox: Optional[SandboxRuntime] = None,
    ):
        super().__init__(request_headers or {})
        self.config = config or ExtractorConfig.from_settings()
        self.base_headers["user-agent"] = self.config.user_agent
        self.sandbox = sandbox or get_sandbox_runtime()

    async def fetch_html(self, url: str) -> str:
        response = await self._make_request(url, timeout=self.config.timeout)
        return response.text

    async def extract(self, url: str, **kwargs) -> ExtractionResult:
        """
        Extract the manifest URL embedded in the player page at ``url``.

        Raises:
            NetworkError: If the page cannot be fetched.
        """
        start = time.monotonic()
        html = await self.fetch_html(url)

        found = self._scan_static(html)
        if found is None:
            found = await self._extract_with_sandbox(url, html)

        elapsed = time.monotonic() - start
        if found is None:
            logger.info("No manifest found for %s after %.2fs", url, elapsed)
            return ExtractionResult(elapsed=elapsed)

        raw_url, strategy = found
        manifest_url = normalize_manifest_url(raw_url)
        logger.info("Manifest found for %s via %s in %.2fs", url, strategy, elapsed)
        return ExtractionResult(manifest_url=manifest_url, strategy=strategy, elapsed=elapsed)

    @staticmethod
    def _scan_static(html: str) -> Optional[Tuple[str, str]]:
        url = scan_manifest_url(html)
        return (url, STRATEGY_STATIC) if url else None

    async def _extract_with_sandbox(self, url: str, html: str) -> Optional[Tuple[str, str]]:
        markup = sanitize_markup(html, self.config.script_hints)
        logger.debug("Static scan missed for %s, sandboxing %d bytes of markup", url, len(markup))
        try:
            async with self.sandbox.open_session(markup, url, load_timeout=self.config.timeout) as session:
                return await self.poll(session)
        except SandboxExecutionError as e:
            logger.warning("Sandbox failed for %s: %s", url, e)
            return None

    async def poll(self, session: SandboxSession) -> Optional[Tuple[str, str]]:
        """Inspect ``session`` up to ``poll_iterations`` times, returning the first hit."""
        inspect_timeout = max(self.config.poll_interval, INSPECT_TIMEOUT_FLOOR)
        for attempt in range(self.config.poll_iterations):
            try:
                found = await asyncio.wait_for(self._inspect(session), inspect_timeout)
            except asyncio.TimeoutError:
                # A page spinning on its main thread never answers again.
                logger.warning("Sandbox page stopped responding after %d polls", attempt)
                return None
            if found is not None:
                logger.debug("Sandbox yielded a manifest on poll %d", attempt + 1)
                return found
            await session.wait_for_capture(self.config.poll_interval)
        return None

    @staticmethod
    async def _inspect(session: SandboxSession) -> Optional[Tuple[str, str]]:
        try:
            captured = await session.read_capture()
            if captured:
                return captured, STRATEGY_PLAYER_SETUP

            configured = await session.read_player_config()
            if configured:
                return configured, STRATEGY_PLAYER_CONFIG

            live = find_manifest_url(await session.read_live_markup())
            if live:
                return live, STRATEGY_LIVE_DOM
        except SandboxExecutionError as e:
            logger.debug("Sandbox inspection failed: %s", e)
        return None

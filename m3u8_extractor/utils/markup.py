"""Pattern helpers applied to raw player markup."""

import re
from typing import Iterable, Optional

from m3u8_extractor.const import MANIFEST_URL_PATTERN, MANIFEST_URL_TERMINATORS

# Element kinds that never carry the manifest URL.
_LINK_TAG = re.compile(r"<link[^>]*>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_IMG_TAG = re.compile(r"<img[^>]*>", re.IGNORECASE)
_IFRAME_BLOCK = re.compile(r"<iframe[^>]*>[\s\S]*?</iframe>", re.IGNORECASE)
_EXTERNAL_SCRIPT = re.compile(
    r"<script\b[^>]*?(?<![\w-])src\s*=\s*([\"'])(?P<src>.*?)\1[^>]*>\s*</script>",
    re.IGNORECASE,
)


def find_manifest_url(markup: str) -> Optional[str]:
    """Return the first manifest-looking URL in ``markup`` as matched, or None."""
    match = MANIFEST_URL_PATTERN.search(markup or "")
    return match.group(0) if match else None


def scan_manifest_url(markup: str) -> Optional[str]:
    """
    Search raw markup for a directly embedded manifest URL.

    Backslashes from JavaScript string escaping (``https:\\/\\/host\\/a.m3u8``)
    are removed from the match.
    """
    url = find_manifest_url(markup)
    if url is None:
        return None
    return url.replace("\\", "")


def sanitize_markup(markup: str, script_hints: Iterable[str]) -> str:
    """
    Drop stylesheets, images, inline frames and unrelated external scripts.

    External scripts survive only when their ``src`` contains one of
    ``script_hints``; inline scripts are always kept.
    """
    hints = [hint.lower() for hint in script_hints]

    def _keep_player_script(match: re.Match) -> str:
        src = match.group("src").lower()
        if any(hint in src for hint in hints):
            return match.group(0)
        return ""

    markup = _LINK_TAG.sub("", markup)
    markup = _STYLE_BLOCK.sub("", markup)
    markup = _IMG_TAG.sub("", markup)
    markup = _IFRAME_BLOCK.sub("", markup)
    return _EXTERNAL_SCRIPT.sub(_keep_player_script, markup)


def normalize_manifest_url(raw: str) -> str:
    """Cut ``raw`` at the first quote, comma or backslash."""
    return MANIFEST_URL_TERMINATORS.split(raw, maxsplit=1)[0]

import re

# An http(s) URL whose path carries ".m3u8", ending at whitespace or a quote.
MANIFEST_URL_PATTERN = re.compile(r"https?://[^\s\"']+\.m3u8[^\s\"']*")

# Characters left over from JavaScript literals around a matched URL.
MANIFEST_URL_TERMINATORS = re.compile(r"[\"',\\]")

# Window globals installed in, or read from, the sandbox.
CAPTURE_SLOT = "__foundM3u8"
CAPTURE_BINDING = "__reportM3u8"
PLAYER_CONFIG_GLOBAL = "player_config"

CONSOLE_METHODS = ["log", "warn", "error", "info", "debug", "trace"]

STRATEGY_STATIC = "static"
STRATEGY_PLAYER_SETUP = "player_setup"
STRATEGY_PLAYER_CONFIG = "player_config"
STRATEGY_LIVE_DOM = "live_dom"

# Shortest time one sandbox inspection may take before the page counts as unresponsive.
INSPECT_TIMEOUT_FLOOR = 0.5

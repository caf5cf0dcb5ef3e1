import logging
import ssl

import httpx

from m3u8_extractor.configs import settings

logger = logging.getLogger(__name__)


def build_default_ssl_context() -> ssl.SSLContext:
    """
    Build the default SSL context using the system trust store.
    """
    return ssl.create_default_context()


DEFAULT_SSL_CONTEXT = build_default_ssl_context()


def create_httpx_client(
    follow_redirects: bool = True,
    ssl_context: ssl.SSLContext | None = None,
    **kwargs,
) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient honoring the configured proxy and TLS routes.

    Args:
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        ssl_context (ssl.SSLContext | None): Explicit SSLContext to use. Defaults to the system trust store.
        **kwargs: Additional AsyncClient keyword arguments.

    Returns:
        httpx.AsyncClient: Configured client.
    """
    mounts = settings.transport_config.get_mounts()
    kwargs.setdefault("timeout", settings.extract_timeout)

    return httpx.AsyncClient(
        mounts=mounts,
        follow_redirects=follow_redirects,
        verify=ssl_context or DEFAULT_SSL_CONTEXT,
        **kwargs,
    )

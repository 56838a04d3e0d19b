# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""httpx client construction for attestation registry queries.

Registries are small JSON read endpoints, so the client is built around
them: JSON ``Accept`` header, the ``BADGEGATE_REGISTRY_TIMEOUT`` budget,
a modest pool, and no redirect following. A registry that answers with
a redirect is reported as a failed query rather than followed to
another host.

``HttpAttestationRegistry`` instances without an explicit client share
one lazily created client:

    from badgegate.http_client import registry_client

    response = await registry_client().get(url)
"""

import logging
from typing import Optional

import httpx

from badgegate import __version__
from badgegate.config import REGISTRY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

_REGISTRY_LIMITS = httpx.Limits(
    max_connections=30,
    max_keepalive_connections=10,
    keepalive_expiry=15.0,
)

_REGISTRY_HEADERS = {
    "Accept": "application/json",
    "User-Agent": f"badgegate/{__version__}",
}

_registry_client: Optional[httpx.AsyncClient] = None


def build_registry_client(
    timeout: float = REGISTRY_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient configured for registry queries.

    Args:
        timeout: Overall per-request timeout in seconds
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests

    Returns:
        A new client; the caller owns it and must close it
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=_REGISTRY_LIMITS,
        headers=_REGISTRY_HEADERS,
        follow_redirects=False,
        transport=transport,
    )


def registry_client() -> httpx.AsyncClient:
    """Return the shared registry client, creating it on first use.

    A client closed by the host is replaced.
    """
    global _registry_client
    if _registry_client is None or _registry_client.is_closed:
        _registry_client = build_registry_client()
        logger.debug("Created registry client (timeout=%.1fs)", REGISTRY_TIMEOUT_SECONDS)
    return _registry_client


async def close_registry_client() -> None:
    """Close the shared registry client. Call on host shutdown."""
    global _registry_client
    if _registry_client is not None and not _registry_client.is_closed:
        await _registry_client.aclose()
    _registry_client = None


def reset_registry_client() -> None:
    """Forget the shared registry client without closing it (tests)."""
    global _registry_client
    _registry_client = None

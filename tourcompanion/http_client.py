"""Shared HTTP client — connection pooling for all outbound requests.

One module-level singleton httpx.AsyncClient (no redirects, 15s timeout).
Per-request timeout overrides via http.post(url, timeout=5).

Usage:
    from tourcompanion.http_client import http
    resp = await http.post(url, json=payload, timeout=5)
"""

import httpx

_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

http = httpx.AsyncClient(
    timeout=15,
    limits=_LIMITS,
    follow_redirects=False,
)


async def close_clients():
    """Shut down the shared client. Call from app lifespan shutdown."""
    try:
        await http.aclose()
    except RuntimeError:
        pass

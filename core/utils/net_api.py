# core/utils/net_api.py
from __future__ import annotations

import logging

import httpx

from core.config import settings

logger = logging.getLogger(__name__)

_http_client: httpx.AsyncClient | None = None


async def get_http_client() -> httpx.AsyncClient:
    """Process-wide lazy AsyncClient. Timeouts are the transport's job; nothing here retries."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.http_timeout)
        logger.info("[net_api] HTTP client created (timeout=%.1fs).", settings.http_timeout)
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None

import gzip
from typing import Any, Dict, Optional

import httpx

from filterflow.exceptions import OracleProtocolError, ProxyConstructionError, SourceFetchError
from filterflow.models.config import ProxyConfig
from filterflow.services.logger import logger

# Fixed per-purpose budgets, in seconds
FEED_TIMEOUT = 20.0
SITEMAP_TIMEOUT = 30.0
FILTER_TIMEOUT = 10.0
SUMMARY_TIMEOUT = 30.0

GZIP_MAGIC = b"\x1f\x8b"


def build_client(user_agent: str, proxy: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Creates the HTTP client for one cycle. When proxying is enabled the proxy
    applies to every request; a proxy httpx cannot use raises ProxyConstructionError.
    """
    kwargs: Dict[str, Any] = {"headers": {"User-Agent": user_agent}}
    if transport is not None:
        kwargs["transport"] = transport
    if proxy.enabled:
        kwargs["proxy"] = proxy.address
    try:
        client = httpx.AsyncClient(**kwargs)
    except (httpx.InvalidURL, ValueError, TypeError, ImportError) as e:
        raise ProxyConstructionError(f"Cannot use proxy {proxy.address!r}: {e}") from e
    if proxy.enabled:
        logger.info(f"[PROXY] Using proxy at {proxy.address}")
    return client


def _maybe_gunzip(url: str, payload: bytes) -> bytes:
    # httpx already decodes Content-Encoding; this covers raw .gz documents
    if not payload.startswith(GZIP_MAGIC):
        return payload
    try:
        return gzip.decompress(payload)
    except (OSError, EOFError) as e:
        raise SourceFetchError(url, f"Corrupt gzip payload: {e}") from e


async def fetch_bytes(client: httpx.AsyncClient, url: str, *, timeout: float) -> bytes:
    try:
        resp = await client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise SourceFetchError(url, f"Request failed: {e!r}") from e

    if not resp.is_success:
        try:
            body = resp.text
        except (UnicodeDecodeError, httpx.HTTPError):
            body = None
        raise SourceFetchError(url, "HTTP error", status=resp.status_code, body=body)

    return _maybe_gunzip(url, resp.content)


async def post_json(client: httpx.AsyncClient, url: str, payload: Dict[str, Any], *, timeout: float) -> httpx.Response:
    """POST a JSON body; a non-2xx answer raises OracleProtocolError."""
    resp = await client.post(url, json=payload, timeout=timeout)
    if not resp.is_success:
        try:
            body = resp.text
        except (UnicodeDecodeError, httpx.HTTPError):
            body = "N/A"
        raise OracleProtocolError(f"HTTP error from {url}", status=resp.status_code, body=body)
    return resp

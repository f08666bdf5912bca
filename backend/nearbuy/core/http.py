import re
from typing import Optional

import httpx

from nearbuy.core.config import Settings


def redact_key(s: str) -> str:
    """
    Redact 'key=...' / 'api_key=...' in URLs or text so we never leak API keys in logs/responses.
    """
    if not s:
        return s
    return re.sub(r"(key=)([^&\s]+)", r"\1REDACTED", s)


def safe_body(resp: httpx.Response, limit: int = 2000) -> str:
    try:
        return redact_key(resp.text)[:limit]
    except Exception:
        return ""


def build_client(cfg: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    One AsyncClient per app. Every call gets the same per-request timeout so a slow vendor
    fails the same way an HTTP error does.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.HTTP_TIMEOUT_SECONDS),
        follow_redirects=True,
        transport=transport,
    )

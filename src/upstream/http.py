"""Outbound HTTP client shared by the Anthropic and Mem0 gateways.

Redirects are followed by hand rather than by httpx so that the method and
body rules stay explicit:

    301, 302  -> re-issued as GET without a body
    307, 308  -> re-issued with the original method and body

Every other status comes back to the caller as a normal ``HttpOutcome``;
a non-2xx response is not an error at this layer.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 3

REWRITE_TO_GET = frozenset({301, 302})
PRESERVE_METHOD = frozenset({307, 308})

# Dropped whenever a redirect leaves the original scheme, host and port.
CREDENTIAL_HEADERS = frozenset({"authorization", "x-api-key"})


class TransportError(Exception):
    """The request could not be completed (connection failure or redirect loop)."""


@dataclass(frozen=True)
class HttpOutcome:
    """Status and parsed body of the final response in a redirect chain."""

    status: int
    body: Any
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to the raw text."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def _origin(url: httpx.URL) -> tuple[str, str, int | None]:
    return url.scheme, url.host, url.port


def _encode(body: Any, headers: dict[str, str]) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    if not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = "application/json"
    return json.dumps(body).encode("utf-8")


class HttpClient:
    """Async JSON-over-HTTPS client with bounded redirect following.

    Args:
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``
            in tests.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        *,
        params: Mapping[str, str] | None = None,
        follow_redirects: bool = True,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> HttpOutcome:
        """Send a request and return the final outcome.

        Raises:
            TransportError: The connection failed, timed out, or more than
                ``max_redirects`` redirects were received.
        """
        send_headers = dict(headers or {})
        content = _encode(body, send_headers)
        target = httpx.URL(url, params=params) if params else httpx.URL(url)
        remaining = max_redirects

        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=False,
        ) as client:
            while True:
                try:
                    resp = await client.request(
                        method, target, headers=send_headers, content=content
                    )
                except httpx.HTTPError as exc:
                    logger.warning("%s %s failed: %s", method, target, exc)
                    raise TransportError(f"{method} {target} failed: {exc}") from exc

                location = resp.headers.get("location")
                is_redirect = resp.status_code in REWRITE_TO_GET | PRESERVE_METHOD
                if not (follow_redirects and is_redirect and location):
                    return HttpOutcome(
                        status=resp.status_code,
                        body=parse_body(resp.text),
                        url=str(target),
                    )

                if remaining <= 0:
                    raise TransportError("too many redirects")
                remaining -= 1

                next_target = target.join(location)
                logger.debug(
                    "Following %d redirect %s -> %s (%d left)",
                    resp.status_code,
                    target,
                    next_target,
                    remaining,
                )
                if _origin(next_target) != _origin(target):
                    send_headers = {
                        k: v for k, v in send_headers.items() if k.lower() not in CREDENTIAL_HEADERS
                    }
                target = next_target
                if resp.status_code in REWRITE_TO_GET:
                    method = "GET"
                    content = None
                    send_headers = {
                        k: v
                        for k, v in send_headers.items()
                        if k.lower() not in ("content-type", "content-length")
                    }

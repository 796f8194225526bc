"""Anthropic Messages API gateway.

A thin wrapper over the shared HTTP client: no retries, no streaming.
Non-2xx responses come back as outcomes for the caller to translate;
transport failures propagate, because a failed completion has no fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from src.llm.models import (
    CHAT_DEFAULT_MAX_TOKENS,
    CHAT_DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    friendly,
    resolve,
)
from src.upstream.http import HttpClient, HttpOutcome

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/v1/messages"


@dataclass(frozen=True)
class CompletionOptions:
    """Caller-tunable completion parameters."""

    model: str = CHAT_DEFAULT_MODEL
    max_tokens: int = CHAT_DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE

    @classmethod
    def from_payload(cls, payload: dict[str, Any], defaults: CompletionOptions) -> CompletionOptions:
        """Take ``model``/``max_tokens``/``temperature`` from a request, else ``defaults``."""
        model = payload.get("model") or defaults.model
        max_tokens = payload.get("max_tokens") or defaults.max_tokens
        temperature = payload.get("temperature")
        return cls(
            model=resolve(model),
            max_tokens=max_tokens,
            temperature=defaults.temperature if temperature is None else temperature,
        )


def reply_text(body: Any) -> str:
    """Extract ``content[0].text`` from a Messages API response, or ''."""
    if not isinstance(body, dict):
        return ""
    content = body.get("content")
    if not isinstance(content, list) or not content:
        return ""
    first = content[0]
    if isinstance(first, dict) and isinstance(first.get("text"), str):
        return first["text"]
    return ""


class CompletionClient:
    """Sends conversations to the Anthropic Messages API."""

    def __init__(
        self,
        http: HttpClient,
        api_key: str,
        base_url: str,
        api_version: str = "2023-06-01",
        max_redirects: int = 3,
    ) -> None:
        self._http = http
        self._api_key = api_key
        self._url = base_url.rstrip("/") + MESSAGES_PATH
        self._api_version = api_version
        self._max_redirects = max_redirects

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str | None,
        options: CompletionOptions,
    ) -> HttpOutcome:
        """POST one Messages request and return the outcome as-is.

        Raises:
            TransportError: The API could not be reached.
        """
        body: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "messages": messages,
            "temperature": options.temperature,
        }
        if system_prompt:
            body["system"] = system_prompt

        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self._api_version,
        }

        outcome = await self._http.request(
            self._url, "POST", headers, body, max_redirects=self._max_redirects
        )
        if outcome.ok:
            logger.info(
                "Completion ok: model=%s, %d message(s)", friendly(options.model), len(messages)
            )
        else:
            logger.warning("Completion returned %d (model=%s)", outcome.status, options.model)
        return outcome

"""Request orchestration: memory recall, prompt assembly, completion, write-back.

One inbound request moves through:

    validate -> recall memories + prepare (concurrently) -> complete
             -> respond -> store the turn (detached, after the response)

Only completion-path failures reach the caller. Memory problems degrade
to "no memories" and are logged by the memory store.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import pydantic

from src.llm.client import CompletionClient, CompletionOptions, reply_text
from src.llm.prompt import build_contextual_message, build_system_prompt
from src.memory.models import GameState, MemoryEntry, Message
from src.memory.store import MemoryStore
from src.server.errors import ConfigurationError, UpstreamError, ValidationError
from src.upstream.http import HttpOutcome, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatRequest:
    """A validated inbound request."""

    messages: list[dict[str, Any]]
    user_message: str
    user_id: str | None
    game_state: GameState | None
    system: str | None
    payload: dict[str, Any]


@dataclass
class GatewayResult:
    """What the front door should send, plus work to run once it has been sent."""

    status: int
    body: Any
    after_response: Callable[[], Awaitable[None]] | None = None


def _text_of(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return ""


def parse_request(payload: Any) -> ChatRequest:
    """Validate an inbound payload and normalize it to a message list.

    Raises:
        ValidationError: Missing payload, missing messages, or a
            non-string model / non-integer max_tokens. A malformed game
            state is logged and dropped.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request - missing body")

    messages = payload.get("messages")
    message = payload.get("message")
    if isinstance(messages, list) and messages:
        if not all(isinstance(m, dict) and "role" in m for m in messages):
            raise ValidationError("Invalid request - malformed messages")
        messages = [dict(m) for m in messages]
    elif isinstance(message, str) and message.strip():
        messages = [{"role": "user", "content": message}]
    else:
        raise ValidationError("Invalid request - missing messages")

    model = payload.get("model")
    if model is not None and not isinstance(model, str):
        raise ValidationError("Invalid request - model must be a string")
    max_tokens = payload.get("max_tokens")
    if max_tokens is not None and (
        isinstance(max_tokens, bool) or not isinstance(max_tokens, int)
    ):
        raise ValidationError("Invalid request - max_tokens must be an integer")
    temperature = payload.get("temperature")
    if temperature is not None and (
        isinstance(temperature, bool) or not isinstance(temperature, (int, float))
    ):
        raise ValidationError("Invalid request - temperature must be a number")

    user_message = next(
        (_text_of(m.get("content")) for m in reversed(messages) if m.get("role") == "user"),
        "",
    )

    game_state = None
    if payload.get("gameState") is not None:
        try:
            game_state = GameState.model_validate(payload["gameState"])
        except pydantic.ValidationError as exc:
            logger.warning("Ignoring malformed gameState: %d error(s)", exc.error_count())

    user_id = payload.get("userId")
    system = payload.get("system")
    return ChatRequest(
        messages=messages,
        user_message=user_message,
        user_id=user_id if isinstance(user_id, str) and user_id else None,
        game_state=game_state,
        system=system if isinstance(system, str) and system else None,
        payload=payload,
    )


def _contextualize(messages: list[dict[str, Any]], game_state: GameState) -> list[dict[str, Any]]:
    """Prefix the latest string-content user message with the account summary."""
    result = list(messages)
    for i in range(len(result) - 1, -1, -1):
        msg = result[i]
        if msg.get("role") == "user" and isinstance(msg.get("content"), str):
            result[i] = {**msg, "content": build_contextual_message(msg["content"], game_state)}
            break
    return result


class Orchestrator:
    """Coordinates the memory store and completion client for both request flows.

    Args:
        completion: Anthropic gateway.
        memory: Mem0 gateway (may be disabled).
        chat_defaults: Completion defaults for the memory-augmented flow.
        proxy_defaults: Completion defaults for the plain pass-through flow.
    """

    def __init__(
        self,
        completion: CompletionClient,
        memory: MemoryStore,
        chat_defaults: CompletionOptions,
        proxy_defaults: CompletionOptions,
    ) -> None:
        self._completion = completion
        self._memory = memory
        self._chat_defaults = chat_defaults
        self._proxy_defaults = proxy_defaults

    def _validate(self, payload: Any) -> ChatRequest:
        if not self._completion.configured:
            logger.error("ANTHROPIC_API_KEY not found in environment variables")
            raise ConfigurationError("Server configuration error - no API key")
        return parse_request(payload)

    async def _recall(self, req: ChatRequest) -> list[MemoryEntry]:
        if not (req.user_id and self._memory.enabled):
            return []
        return await self._memory.search(req.user_id, req.user_message)

    async def _prepare(
        self, req: ChatRequest, defaults: CompletionOptions, contextualize: bool
    ) -> tuple[list[dict[str, Any]], CompletionOptions]:
        options = CompletionOptions.from_payload(req.payload, defaults)
        messages = req.messages
        if contextualize and req.game_state is not None:
            messages = _contextualize(messages, req.game_state)
        return messages, options

    async def _complete(
        self, messages: list[dict[str, Any]], system: str | None, options: CompletionOptions
    ) -> HttpOutcome:
        try:
            outcome = await self._completion.complete(messages, system, options)
        except TransportError as exc:
            logger.error("Request error: %s", exc)
            raise UpstreamError(502, "Failed to connect to Anthropic API") from exc

        if not outcome.ok:
            body = outcome.body if isinstance(outcome.body, dict) else None
            raise UpstreamError(outcome.status, "Anthropic API error", body)
        if not isinstance(outcome.body, dict):
            raise UpstreamError(502, "Failed to parse Anthropic response")
        return outcome

    async def handle_chat(self, payload: Any) -> GatewayResult:
        """Memory-augmented advisor flow.

        Raises:
            GatewayError: Configuration, validation or completion failure.
        """
        req = self._validate(payload)

        memories, (messages, options) = await asyncio.gather(
            self._recall(req),
            self._prepare(req, self._chat_defaults, contextualize=req.system is not None),
        )
        system = req.system or build_system_prompt(memories, req.game_state)
        logger.info(
            "Chat request: user=%s, %d message(s), %d memories",
            req.user_id or "-",
            len(messages),
            len(memories),
        )

        outcome = await self._complete(messages, system, options)

        after_response = None
        assistant_text = reply_text(outcome.body)
        if req.user_id and self._memory.enabled and assistant_text:
            turn = [
                Message(role="user", content=req.user_message),
                Message(role="assistant", content=assistant_text),
            ]
            after_response = functools.partial(
                self._memory.store, req.user_id, turn, req.game_state
            )
        return GatewayResult(outcome.status, outcome.body, after_response)

    async def handle_proxy(self, payload: Any) -> GatewayResult:
        """Plain pass-through flow: no memory, no composed system prompt."""
        req = self._validate(payload)
        messages, options = await self._prepare(req, self._proxy_defaults, contextualize=True)
        outcome = await self._complete(messages, req.system, options)
        return GatewayResult(outcome.status, outcome.body)

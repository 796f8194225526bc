"""aiohttp front door for the advisor gateway.

Routes:
    POST /api/chat       memory-augmented advisor flow
    POST /api/anthropic  plain pass-through to the Messages API
    GET  /health         liveness check

Both API routes answer OPTIONS preflights and reject other methods with
405. CORS headers are attached to every response just before it is sent.
"""

from __future__ import annotations

import json
import logging

import httpx
from aiohttp import web

from src.config import Settings, settings as default_settings
from src.llm.client import CompletionClient, CompletionOptions
from src.memory.store import MemoryStore
from src.server.errors import GatewayError
from src.server.orchestrator import GatewayResult, Orchestrator
from src.upstream.http import HttpClient
from src.upstream.tasks import drain, fire_and_forget

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)
SETTINGS_KEY = web.AppKey("settings", Settings)


async def _add_cors_headers(request: web.Request, response: web.StreamResponse) -> None:
    response.headers["Access-Control-Allow-Origin"] = request.app[SETTINGS_KEY].cors_origin
    response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"


async def _read_payload(request: web.Request) -> object:
    """Return the parsed JSON body, or None when the body is empty."""
    raw = await request.read()
    if not raw.strip():
        return None
    return json.loads(raw)


async def _send(request: web.Request, result: GatewayResult) -> web.StreamResponse:
    response = web.json_response(result.body, status=result.status)
    if result.after_response is None:
        return response

    # Write the response out before scheduling the memory write-back.
    await response.prepare(request)
    await response.write_eof()
    fire_and_forget(result.after_response(), name="memory-store")
    return response


def _endpoint(flow: str):
    """Build a handler for one orchestrator flow ("handle_chat" / "handle_proxy")."""

    async def handler(request: web.Request) -> web.StreamResponse:
        if request.method == "OPTIONS":
            return web.Response(status=200)
        if request.method != "POST":
            return web.json_response({"error": "Method not allowed"}, status=405)

        try:
            payload = await _read_payload(request)
        except ValueError:
            logger.warning("Bad request: invalid JSON (%s)", request.path)
            return web.json_response({"error": "invalid JSON"}, status=400)

        orchestrator = request.app[ORCHESTRATOR_KEY]
        try:
            result = await getattr(orchestrator, flow)(payload)
        except GatewayError as exc:
            logger.info("%s -> %d: %s", request.path, exc.status, exc.message)
            return web.json_response(exc.to_body(), status=exc.status)
        except Exception as exc:
            logger.exception("Handler error")
            return web.json_response(
                {"error": "Handler error", "message": str(exc)}, status=500
            )

        return await _send(request, result)

    return handler


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _drain_background(app: web.Application) -> None:
    await drain()


def build_orchestrator(
    cfg: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> Orchestrator:
    """Wire the gateways from settings."""
    http = HttpClient(timeout=cfg.http_timeout, transport=transport)
    completion = CompletionClient(
        http,
        api_key=cfg.anthropic_api_key,
        base_url=cfg.anthropic_api_url,
        api_version=cfg.anthropic_version,
        max_redirects=cfg.max_redirects,
    )
    memory = MemoryStore(
        http,
        api_key=cfg.mem0_api_key,
        base_url=cfg.mem0_api_url,
        max_redirects=cfg.max_redirects,
    )
    return Orchestrator(
        completion,
        memory,
        chat_defaults=CompletionOptions(
            cfg.chat_model, cfg.chat_max_tokens, cfg.default_temperature
        ),
        proxy_defaults=CompletionOptions(
            cfg.proxy_model, cfg.proxy_max_tokens, cfg.default_temperature
        ),
    )


def create_app(
    cfg: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None
) -> web.Application:
    """Build the aiohttp Application with routes."""
    cfg = cfg or default_settings
    app = web.Application()
    app[SETTINGS_KEY] = cfg
    app[ORCHESTRATOR_KEY] = build_orchestrator(cfg, transport)

    app.router.add_get("/health", _health)
    app.router.add_route("*", "/api/chat", _endpoint("handle_chat"))
    app.router.add_route("*", "/api/anthropic", _endpoint("handle_proxy"))

    app.on_response_prepare.append(_add_cors_headers)
    app.on_cleanup.append(_drain_background)

    if not cfg.anthropic_api_key:
        logger.error("ANTHROPIC_API_KEY is empty, every request will fail")
    return app

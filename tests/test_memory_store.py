"""Tests for the Mem0 memory gateway."""

import json

import httpx
import pytest

from src.memory.models import GameState, MemoryEntry, Message
from src.memory.store import MemoryStore, build_metadata, classify_game_phase, normalize_record
from src.upstream.http import HttpClient
from tests.upstreams import Upstream


def _store(upstream: Upstream, api_key: str = "m0-test", max_redirects: int = 3) -> MemoryStore:
    http = HttpClient(timeout=5, transport=upstream.transport)
    return MemoryStore(
        http, api_key=api_key, base_url="https://api.mem0.ai", max_redirects=max_redirects
    )


def _turn() -> list[Message]:
    return [
        Message(role="user", content="What should I build?"),
        Message(role="assistant", content="A granary."),
    ]


def _game_state(villages: int, population: int = 0) -> GameState:
    return GameState(villages=[{"id": i} for i in range(villages)], population=population)


# -- search ------------------------------------------------------------------


async def test_search_scoped_to_user_with_query() -> None:
    upstream = Upstream(
        lambda r: httpx.Response(200, json=[{"id": "m1", "memory": "Prefers Romans", "score": 0.9}])
    )

    results = await _store(upstream).search("u1", "which tribe?")

    assert results == [MemoryEntry(text="Prefers Romans", id="m1", score=0.9)]
    (req,) = upstream.requests
    assert req.method == "GET"
    assert req.url.path == "/v1/memories/"
    assert req.url.params["user_id"] == "u1"
    assert req.url.params["search_query"] == "which tribe?"
    assert req.headers["authorization"] == "Token m0-test"


async def test_search_without_query_omits_param() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json={"results": []}))

    await _store(upstream).search("u1")

    assert "search_query" not in upstream.requests[0].url.params


async def test_search_accepts_results_envelope() -> None:
    upstream = Upstream(
        lambda r: httpx.Response(200, json={"results": [{"text": "Has 3 villages"}]})
    )

    results = await _store(upstream).search("u1", "villages")

    assert [e.text for e in results] == ["Has 3 villages"]


@pytest.mark.parametrize("user_id", [None, ""])
async def test_search_without_user_makes_no_call(user_id) -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json=[]))

    assert await _store(upstream).search(user_id, "anything") == []
    assert upstream.requests == []


async def test_search_disabled_makes_no_call() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json=[]))
    store = _store(upstream, api_key="")

    assert not store.enabled
    assert await store.search("u1", "anything") == []
    assert upstream.requests == []


async def test_search_non_2xx_returns_empty() -> None:
    upstream = Upstream(lambda r: httpx.Response(500, json={"error": "boom"}))

    assert await _store(upstream).search("u1", "x") == []


async def test_search_connection_error_returns_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    assert await _store(Upstream(handler)).search("u1", "x") == []


async def test_search_respects_redirect_budget() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/memories/":
            return httpx.Response(302, headers={"Location": "/v2/memories/"})
        return httpx.Response(200, json=[{"memory": "moved"}])

    upstream = Upstream(handler)

    assert await _store(upstream, max_redirects=0).search("u1", "x") == []
    assert len(upstream.requests) == 1
    assert [e.text for e in await _store(upstream, max_redirects=1).search("u1", "x")] == ["moved"]


async def test_store_respects_redirect_budget() -> None:
    upstream = Upstream(lambda r: httpx.Response(307, headers={"Location": "/elsewhere"}))

    await _store(upstream, max_redirects=2).store("u1", _turn())

    assert len(upstream.requests) == 3


async def test_search_malformed_payload_returns_empty() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, text="not json at all"))

    assert await _store(upstream).search("u1", "x") == []


# -- store -------------------------------------------------------------------


async def test_store_posts_messages_and_metadata() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json=[{"id": "new"}]))

    await _store(upstream).store("u1", _turn(), _game_state(1, 200))

    (req,) = upstream.requests
    assert req.method == "POST"
    assert req.headers["authorization"] == "Token m0-test"
    payload = json.loads(req.content)
    assert payload["user_id"] == "u1"
    assert payload["messages"] == [
        {"role": "user", "content": "What should I build?"},
        {"role": "assistant", "content": "A granary."},
    ]
    meta = payload["metadata"]
    assert meta["gamePhase"] == "early-game"
    assert meta["villages"] == 1
    assert meta["population"] == 200
    assert "timestamp" in meta


async def test_store_without_game_state_sends_empty_metadata() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json=[]))

    await _store(upstream).store("u1", _turn())

    assert json.loads(upstream.requests[0].content)["metadata"] == {}


async def test_store_disabled_or_anonymous_is_noop() -> None:
    upstream = Upstream(lambda r: httpx.Response(200, json=[]))

    await _store(upstream, api_key="").store("u1", _turn())
    await _store(upstream).store(None, _turn())

    assert upstream.requests == []


async def test_store_non_2xx_does_not_raise() -> None:
    upstream = Upstream(lambda r: httpx.Response(503, text="unavailable"))

    assert await _store(upstream).store("u1", _turn()) is None


async def test_store_connection_error_does_not_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    assert await _store(Upstream(handler)).store("u1", _turn()) is None


# -- game phase --------------------------------------------------------------


@pytest.mark.parametrize(
    ("villages", "population", "phase"),
    [
        (1, 100, "early-game"),
        (1, 499, "early-game"),
        (1, 500, "settling-phase"),
        (2, 0, "settling-phase"),
        (0, 0, "settling-phase"),
        (5, 3000, "growth-phase"),
        (9, 0, "growth-phase"),
        (10, 0, "mid-game"),
        (15, 0, "mid-game"),
        (20, 0, "late-game"),
        (25, 0, "late-game"),
    ],
)
def test_classify_game_phase(villages: int, population: int, phase: str) -> None:
    assert classify_game_phase(_game_state(villages, population)) == phase


def test_build_metadata_none() -> None:
    assert build_metadata(None) == {}


# -- normalize ---------------------------------------------------------------


def test_normalize_record_field_priority() -> None:
    entry = normalize_record({"memory": "first", "text": "second", "content": "third"})
    assert entry.text == "first"
    assert normalize_record({"text": "second", "content": "third"}).text == "second"
    assert normalize_record({"content": "third"}).text == "third"


def test_normalize_record_without_text() -> None:
    assert normalize_record({"id": "m1", "score": 0.3}) is None
    assert normalize_record("just a string") is None


def test_normalize_drops_textless_records() -> None:
    raw = {"results": [{"memory": "kept"}, {"id": "x"}, None]}
    assert [e.text for e in MemoryStore._normalize(raw)] == ["kept"]


def test_normalize_empty() -> None:
    assert MemoryStore._normalize({}) == []
    assert MemoryStore._normalize([]) == []
    assert MemoryStore._normalize(None) == []
    assert MemoryStore._normalize({"results": "nope"}) == []

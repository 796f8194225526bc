"""Long-term memory gateway backed by the Mem0 REST API.

Supports two modes controlled by environment variables:
- Hosted: Set MEM0_API_KEY. Searches and stores go to Mem0.
- Disabled: No MEM0_API_KEY. Store calls become no-ops and search
  returns empty results. The advisor still works, just without
  long-term memory.

Nothing in here raises to the caller. Memory is an enhancement, so every
failure is logged and absorbed.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from src.memory.models import GameState, MemoryEntry, Message
from src.upstream.http import HttpClient, TransportError

logger = logging.getLogger(__name__)

MEMORIES_PATH = "/v1/memories/"

# Field names Mem0 (and older exports) use for the memory text, in priority order.
TEXT_FIELDS = ("memory", "text", "content")


def classify_game_phase(game_state: GameState) -> str:
    """Coarse account stage used as memory metadata."""
    villages = game_state.village_count
    if villages == 1 and game_state.population < 500:
        return "early-game"
    if villages < 3:
        return "settling-phase"
    if villages < 10:
        return "growth-phase"
    if villages < 20:
        return "mid-game"
    return "late-game"


def build_metadata(game_state: GameState | None) -> dict[str, Any]:
    """Summarize a game state for storage alongside a conversation turn."""
    if game_state is None:
        return {}
    return {
        "gamePhase": classify_game_phase(game_state),
        "villages": game_state.village_count,
        "population": game_state.population,
        "timestamp": datetime.now(UTC).isoformat(),
    }


class MemoryStore:
    """Per-user memory search and write-back."""

    def __init__(
        self, http: HttpClient, api_key: str, base_url: str, max_redirects: int = 3
    ) -> None:
        self._http = http
        self._max_redirects = max_redirects
        self._api_key = api_key
        self._url = base_url.rstrip("/") + MEMORIES_PATH
        if not api_key:
            logger.warning("Memory store disabled: set MEM0_API_KEY to enable")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Token {self._api_key}"}

    # -- Read ----------------------------------------------------------------

    async def search(self, user_id: str | None, query: str | None = None) -> list[MemoryEntry]:
        """Search for memories relevant to ``query`` for one user.

        Returns an empty list when disabled, when ``user_id`` is empty,
        or on any failure.
        """
        if not self.enabled or not user_id:
            return []

        params = {"user_id": user_id}
        if query:
            params["search_query"] = query

        try:
            outcome = await self._http.request(
                self._url,
                "GET",
                self._headers(),
                params=params,
                max_redirects=self._max_redirects,
            )
        except TransportError:
            logger.exception("Memory search failed for user %s", user_id)
            return []

        if not outcome.ok:
            logger.warning("Memory search returned %d for user %s", outcome.status, user_id)
            return []

        entries = self._normalize(outcome.body)
        logger.debug("Memory search for %s returned %d entries", user_id, len(entries))
        return entries

    # -- Write ---------------------------------------------------------------

    async def store(
        self,
        user_id: str | None,
        conversation: Sequence[Message],
        game_state: GameState | None = None,
    ) -> None:
        """Persist a conversation turn. Best effort, at most once."""
        if not self.enabled or not user_id:
            return

        payload = {
            "messages": [m.model_dump() for m in conversation],
            "user_id": user_id,
            "metadata": build_metadata(game_state),
        }

        try:
            outcome = await self._http.request(
                self._url, "POST", self._headers(), payload, max_redirects=self._max_redirects
            )
        except TransportError:
            logger.exception("Failed to store memory for user %s", user_id)
            return

        if outcome.ok:
            logger.info("Stored %d message(s) for user %s", len(conversation), user_id)
        else:
            logger.warning(
                "Memory store returned %d for user %s: %s",
                outcome.status,
                user_id,
                str(outcome.body)[:200],
            )

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _normalize(raw: Any) -> list[MemoryEntry]:
        """Normalize Mem0 results (list or ``{"results": [...]}``) into MemoryEntry list."""
        if isinstance(raw, dict):
            items = raw.get("results", [])
        elif isinstance(raw, list):
            items = raw
        else:
            items = []
        if not isinstance(items, list):
            return []

        entries = []
        for item in items:
            entry = normalize_record(item)
            if entry is not None:
                entries.append(entry)
        return entries


def normalize_record(item: Any) -> MemoryEntry | None:
    """Map a loosely structured store record to a MemoryEntry, or None if it has no text."""
    if not isinstance(item, dict):
        return None
    text = next((item[f] for f in TEXT_FIELDS if isinstance(item.get(f), str) and item[f]), "")
    if not text:
        return None
    score = item.get("score")
    return MemoryEntry(
        text=text,
        id=str(item.get("id", "")),
        score=score if isinstance(score, (int, float)) else None,
    )

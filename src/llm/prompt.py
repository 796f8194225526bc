"""System prompt and contextual message assembly.

Everything here is pure: same inputs, same text.
"""

from collections.abc import Sequence
from typing import Any

from src.memory.models import GameState, MemoryEntry, Resources

UNKNOWN = "unknown"

PREAMBLE = (
    "You are an expert Travian strategy advisor. You help the player make "
    "concrete decisions about building, troops, expansion and resource "
    "management based on the state of their account."
)

INSTRUCTIONS = (
    "## Instructions\n"
    "- Give specific, actionable recommendations for the current game state.\n"
    "- Prioritize by impact and explain trade-offs briefly.\n"
    "- Refer back to previous context when it is relevant.\n"
    "- If information is missing, say what you would need to know."
)


def _value(value: Any, default: Any = 0) -> Any:
    return default if value is None else value


def _format_memories(memories: Sequence[MemoryEntry]) -> str:
    lines = ["## Previous Context"]
    for entry in memories:
        lines.append(f"- {entry.text}")
    return "\n".join(lines)


def _format_resources(label: str, res: Resources, suffix: str = "") -> str:
    return (
        f"{label}: Wood {res.wood}{suffix}, Clay {res.clay}{suffix}, "
        f"Iron {res.iron}{suffix}, Crop {res.crop}{suffix}"
    )


def _format_game_state(game_state: GameState) -> str:
    cp = game_state.culture_points
    lines = [
        "## Current Game State",
        f"Villages: {game_state.village_count}",
        f"Population: {game_state.population}",
        f"Culture Points: {_value(cp and cp.current)}/{_value(cp and cp.needed)}",
        f"Hours to next village: {_value(cp and cp.hours_remaining, UNKNOWN)}",
    ]
    if game_state.resources is not None:
        lines.append(_format_resources("Resources", game_state.resources))
    if game_state.production is not None:
        lines.append(_format_resources("Production", game_state.production, "/h"))
    if game_state.hero_data is not None:
        lines.append(f"Hero level: {_value(game_state.hero_data.level, UNKNOWN)}")
    return "\n".join(lines)


def build_system_prompt(memories: Sequence[MemoryEntry], game_state: GameState | None) -> str:
    """Assemble the advisor system prompt.

    Args:
        memories: Retrieved memories. The previous-context section is only
            included when this is non-empty.
        game_state: Snapshot of the player's account. ``None`` renders the
            same labelled lines with zero / unknown values.
    """
    sections = [PREAMBLE]
    if memories:
        sections.append(_format_memories(memories))
    sections.append(_format_game_state(game_state or GameState()))
    sections.append(INSTRUCTIONS)
    return "\n\n".join(sections)


def build_contextual_message(user_message: str, game_state: GameState | None) -> str:
    """Prefix the user's message with a one-line account summary."""
    gs = game_state or GameState()
    res = gs.resources or Resources()
    speed = UNKNOWN if gs.server_speed is None else f"{gs.server_speed}x"
    summary = (
        f"[Server: {speed} | "
        f"Villages: {gs.village_count} | Population: {gs.population} | "
        f"Wood: {res.wood} | Clay: {res.clay} | Iron: {res.iron} | Crop: {res.crop}]"
    )
    return f"{summary}\n{user_message}"

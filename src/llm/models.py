"""Model identifiers and named completion defaults."""

# Defaults observed across the two request flows. Settings override both.
CHAT_DEFAULT_MODEL = "claude-sonnet-4-20250514"
PROXY_DEFAULT_MODEL = "claude-sonnet-4-20250514"
LEGACY_DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
CHAT_DEFAULT_MAX_TOKENS = 2000
PROXY_DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7

MODEL_MAP: dict[str, str] = {
    "haiku": "claude-3-5-haiku-20241022",
    "sonnet": CHAT_DEFAULT_MODEL,
    "opus": "claude-opus-4-20250514",
}

# Reverse lookup: full model string → friendly name
FRIENDLY_NAMES: dict[str, str] = {v: k for k, v in MODEL_MAP.items()}


def resolve(name_or_id: str) -> str:
    """Resolve a friendly name to a full model ID. Anything else passes through."""
    return MODEL_MAP.get(name_or_id, name_or_id)


def friendly(model_id: str) -> str:
    """Return the friendly name for a model ID, or the ID itself."""
    return FRIENDLY_NAMES.get(model_id, model_id)

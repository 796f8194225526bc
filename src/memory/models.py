"""Data models for game state, memories and conversation turns."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Snapshot(BaseModel):
    """Frozen camelCase-aliased model that tolerates unknown fields."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Treat JSON null as an absent field so defaults apply."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Resources(_Snapshot):
    wood: int | float = 0
    clay: int | float = 0
    iron: int | float = 0
    crop: int | float = 0


class CulturePoints(_Snapshot):
    current: int | None = None
    needed: int | None = None
    hours_remaining: float | None = Field(default=None, alias="hoursRemaining")


class HeroData(_Snapshot):
    level: int | None = None
    health: float | None = None
    attack: int | None = None
    defense: int | None = None
    resource_production: int | None = Field(default=None, alias="resourceProduction")


class GameState(_Snapshot):
    """Read-only snapshot of the player's account, supplied by the client."""

    villages: list[Any] = Field(default_factory=list)
    population: int = 0
    resources: Resources | None = None
    production: Resources | None = None
    culture_points: CulturePoints | None = Field(default=None, alias="culturePoints")
    hero_data: HeroData | None = Field(default=None, alias="heroData")
    server_speed: float | int | None = Field(default=None, alias="serverSpeed")

    @property
    def village_count(self) -> int:
        return len(self.villages)


class Message(BaseModel):
    """A single conversation message."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class MemoryEntry(BaseModel):
    """A memory retrieved from the store."""

    text: str
    id: str = ""
    score: float | None = None

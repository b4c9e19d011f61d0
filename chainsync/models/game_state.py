"""Pydantic models for game state.

Field names are snake_case in Python and camelCase on the wire.
"""

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RemoteModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase wire fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    def to_remote(self) -> dict:
        """Dump the model using wire field names."""
        return self.model_dump(by_alias=True, mode="json")


class PlayerState(RemoteModel):
    """Character stats persisted per player.

    Values are plain numbers; no game rules are enforced here.
    """

    health: int | float = Field(..., description="Current health")
    max_health: int | float = Field(..., description="Maximum health")
    strength: int | float = Field(..., description="Strength stat")
    wisdomness: int | float = Field(..., description="Wisdom stat")
    benchpress: int | float = Field(..., description="Benchpress stat")
    curl: int | float = Field(..., description="Curl stat")
    experience: int | float = Field(..., description="Accumulated experience")
    level: int | float = Field(..., description="Character level")


class BattleResult(IntEnum):
    """Outcome of a battle from the player's point of view."""

    LOSS = 0
    DRAW = 1
    WIN = 2


class BattleRecord(RemoteModel):
    """Result of a single battle, identified by battle_id."""

    battle_id: str
    player_id: str
    opponent: str
    result: BattleResult
    damage_dealt: int | float = 0
    damage_taken: int | float = 0
    experience_gained: int | float = 0
    timestamp: int | None = Field(
        default=None, description="Assigned by the remote side when recorded"
    )


class Guild(RemoteModel):
    """Guild summary as exposed by the remote application."""

    id: str
    name: str
    members: list[str] = Field(default_factory=list)
    resources: int = 0
    level: int = 0


class PlayerAchievement(RemoteModel):
    """Achievement collected by the hub application."""

    achievement_id: str
    chain_id: str
    timestamp: int
    metadata: str = ""

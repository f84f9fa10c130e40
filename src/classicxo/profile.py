"""Caller-owned player profile: score tally, settings, and the persisted snapshot."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .ai import Difficulty
from .game import Draw, Mark, Outcome, Win


class GameMode(str, Enum):
    PVP = "pvp"
    AI = "ai"


class Theme(str, Enum):
    DEFAULT = "default"
    DARK = "dark"
    NEON = "neon"
    OCEAN = "ocean"


class ScoreTally(BaseModel):
    """Wins per mark plus draws. Instances are never modified in place."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    x_wins: int = Field(default=0, ge=0, alias="playerX")
    o_wins: int = Field(default=0, ge=0, alias="playerO")
    draws: int = Field(default=0, ge=0)

    def record(self, outcome: Outcome) -> "ScoreTally":
        if isinstance(outcome, Win):
            if outcome.mark is Mark.X:
                return self.model_copy(update={"x_wins": self.x_wins + 1})
            return self.model_copy(update={"o_wins": self.o_wins + 1})
        if isinstance(outcome, Draw):
            return self.model_copy(update={"draws": self.draws + 1})
        return self

    def reset(self) -> "ScoreTally":
        return ScoreTally()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    sound_enabled: bool = Field(default=True, alias="soundEnabled")
    music_enabled: bool = Field(default=False, alias="musicEnabled")
    volume: int = Field(default=50, ge=0, le=100)
    theme: Theme = Theme.DEFAULT


class Snapshot(BaseModel):
    """Flat record persisted between visits.

    Missing keys fall back to defaults, so older or partial files still load.
    """

    model_config = ConfigDict(populate_by_name=True)

    settings: Settings = Field(default_factory=Settings)
    stats: ScoreTally = Field(default_factory=ScoreTally, alias="gameStats")
    game_mode: GameMode = Field(default=GameMode.PVP, alias="gameMode")
    ai_difficulty: Difficulty = Field(default=Difficulty.MEDIUM, alias="aiDifficulty")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

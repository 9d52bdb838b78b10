from enum import Enum
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .db import settings

Side = Literal["p1", "p2"]
SIDES = ("p1", "p2")


def opponent(side: str) -> str:
    return "p2" if side == "p1" else "p1"


class Stage(str, Enum):
    CATEGORY = "category"
    QUESTION = "question"
    ANSWER = "answer"
    RESULTS = "results"


class BonusPolicyName(str, Enum):
    RANDOM = "random"
    POWER = "power"
    BOTH = "both"


class Media(BaseModel):
    kind: Literal["image", "audio", "video"]
    src: str
    alt: Optional[str] = None
    poster: Optional[str] = None
    type: Optional[str] = None


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    order: int = 0
    category: str
    points: int = Field(default=1, ge=1)
    prompt: str
    answer: str
    fact: Optional[str] = None
    media: Optional[Media] = None


class PlayerState(BaseModel):
    name: str
    score: int = 0
    streak: int = Field(default=0, ge=0)
    max_streak: int = Field(default=0, ge=0)


class SessionState(BaseModel):
    stage: Stage = Stage.CATEGORY
    index: int = Field(default=0, ge=0)
    # set only while a countdown is running on the QUESTION stage
    question_deadline_ts: Optional[float] = None


class PowerSlot(BaseModel):
    available: bool = True
    armed_index: Optional[int] = Field(default=None, ge=0)


class PowerState(BaseModel):
    p1: PowerSlot = Field(default_factory=PowerSlot)
    p2: PowerSlot = Field(default_factory=PowerSlot)


class Wagers(BaseModel):
    p1: int = Field(default=0, ge=0, le=3)
    p2: int = Field(default=0, ge=0, le=3)


class Resolved(BaseModel):
    p1: bool = False
    p2: bool = False


class FinaleState(BaseModel):
    wager: Wagers = Field(default_factory=Wagers)
    resolved: Resolved = Field(default_factory=Resolved)
    first_correct: Optional[Side] = None


class GameConfig(BaseModel):
    bonus_policy: BonusPolicyName = Field(default_factory=lambda: BonusPolicyName(settings.BONUS_POLICY))


def default_player(side: str) -> PlayerState:
    return PlayerState(name="Player 1" if side == "p1" else "Player 2")


# The session aggregate. Every rules-engine operation receives it explicitly;
# nothing about a running game lives in module globals.
class Game(BaseModel):
    id: str
    config: GameConfig = Field(default_factory=GameConfig)
    session: SessionState = Field(default_factory=SessionState)
    p1: PlayerState = Field(default_factory=lambda: default_player("p1"))
    p2: PlayerState = Field(default_factory=lambda: default_player("p2"))
    last_correct: Optional[Side] = None
    bonus: Dict[str, int] = Field(default_factory=dict)  # question id -> multiplier
    power: PowerState = Field(default_factory=PowerState)
    finale: FinaleState = Field(default_factory=FinaleState)

    def player(self, side: str) -> PlayerState:
        return getattr(self, side)

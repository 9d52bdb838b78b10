"""Stage transitions for a single game.

The functions here are pure: they look at the current ``SessionState`` and
describe where the host action leads, together with the side effects that
entering the target stage implies. ``engine.GameEngine`` applies both.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .models import SessionState, Stage


class EffectKind(str, Enum):
    RESET_FINALE = "reset_finale"
    ASSIGN_BONUS = "assign_bonus"


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    index: int


@dataclass(frozen=True)
class Transition:
    stage: Stage
    index: int
    effects: List[Effect] = field(default_factory=list)


def category_entry_effects(index: int) -> List[Effect]:
    # Finale reset runs on every question; it is idempotent off the finale.
    return [Effect(EffectKind.RESET_FINALE, index), Effect(EffectKind.ASSIGN_BONUS, index)]


def _to(stage: Stage, index: int) -> Transition:
    effects = category_entry_effects(index) if stage == Stage.CATEGORY else []
    return Transition(stage=stage, index=index, effects=effects)


def advance(session: SessionState, last_index: int) -> Optional[Transition]:
    stage, index = session.stage, session.index

    if stage == Stage.CATEGORY:
        return _to(Stage.QUESTION, index)
    if stage == Stage.QUESTION:
        return _to(Stage.ANSWER, index)
    if stage == Stage.ANSWER:
        if index < last_index:
            return _to(Stage.CATEGORY, index + 1)
        return _to(Stage.RESULTS, index)
    # RESULTS is terminal until the game is reset
    return None


def retreat(session: SessionState, last_index: int) -> Optional[Transition]:
    stage, index = session.stage, session.index

    if stage == Stage.QUESTION:
        return _to(Stage.CATEGORY, index)
    if stage == Stage.ANSWER:
        return _to(Stage.QUESTION, index)
    if stage == Stage.RESULTS:
        return _to(Stage.ANSWER, min(index, last_index))
    if index > 0:
        # Lands on the previous ANSWER, so its category bonus is not re-rolled.
        return _to(Stage.ANSWER, index - 1)
    return None


def clamp_index(index: int, last_index: int) -> int:
    return min(max(0, index), max(0, last_index))

from __future__ import annotations

import logging
import random
from typing import Dict, Protocol, Sequence

from .models import BonusPolicyName, Game, PowerState, Stage

logger = logging.getLogger(__name__)

BONUS_MULTIPLIER = 2


class BonusPolicy(Protocol):
    def multiplier_for(self, side: str, question_id: str) -> int:
        ...


class RandomBonus:
    """Shared x2 drawn once per question, the same for both sides."""

    def __init__(self, assigned: Dict[str, int]):
        self.assigned = assigned

    def multiplier_for(self, side: str, question_id: str) -> int:
        return BONUS_MULTIPLIER if self.assigned.get(question_id) == BONUS_MULTIPLIER else 1


class PowerBonus:
    """Per-side x2 that applies to the one question occurrence it was armed on."""

    def __init__(self, power: PowerState, question_ids: Sequence[str]):
        self.power = power
        self.question_ids = question_ids

    def multiplier_for(self, side: str, question_id: str) -> int:
        armed = getattr(self.power, side).armed_index
        if armed is None or armed >= len(self.question_ids):
            return 1
        return BONUS_MULTIPLIER if self.question_ids[armed] == question_id else 1


class CombinedBonus:
    def __init__(self, *policies: BonusPolicy):
        self.policies = policies

    def multiplier_for(self, side: str, question_id: str) -> int:
        # Sources do not stack: x2 is the ceiling.
        return max((p.multiplier_for(side, question_id) for p in self.policies), default=1)


def make_policy(game: Game, question_ids: Sequence[str]) -> BonusPolicy:
    name = game.config.bonus_policy
    if name == BonusPolicyName.RANDOM:
        return RandomBonus(game.bonus)
    if name == BonusPolicyName.POWER:
        return PowerBonus(game.power, question_ids)
    return CombinedBonus(RandomBonus(game.bonus), PowerBonus(game.power, question_ids))


def uses_random(game: Game) -> bool:
    return game.config.bonus_policy in (BonusPolicyName.RANDOM, BonusPolicyName.BOTH)


def uses_power(game: Game) -> bool:
    return game.config.bonus_policy in (BonusPolicyName.POWER, BonusPolicyName.BOTH)


def roll(rng: random.Random, probability: float) -> int:
    return BONUS_MULTIPLIER if rng.random() < probability else 1


def assign_bonus(game: Game, question_id: str, rng: random.Random, probability: float) -> bool:
    """Memoize the random multiplier for ``question_id`` on its first visit."""

    if question_id in game.bonus:
        return False
    game.bonus[question_id] = roll(rng, probability)
    logger.debug("game=%s question=%s bonus=x%d", game.id, question_id, game.bonus[question_id])
    return True


def can_arm(game: Game, side: str, is_finale: bool) -> bool:
    return (
        uses_power(game)
        and getattr(game.power, side).available
        and game.session.stage == Stage.CATEGORY
        and not is_finale
    )


def arm(game: Game, side: str, is_finale: bool) -> bool:
    if not can_arm(game, side, is_finale):
        return False
    slot = getattr(game.power, side)
    # one-way: the power is spent even if the side never scores on this question
    slot.available = False
    slot.armed_index = game.session.index
    return True

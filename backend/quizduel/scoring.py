from __future__ import annotations

from .bonus import BonusPolicy
from .models import Game, Question, opponent

AWARD_AMOUNTS = (1, 2, 3)
STREAK_BONUS_FROM = 3
STREAK_BONUS_POINTS = 1


def points_for(question: Question, side: str, amount: int, policy: BonusPolicy) -> int:
    """Points an award is worth before any streak bonus.

    The bonus multiplier is read from ``policy`` on every call so arming or
    rolling after the question was opened is always reflected.
    """

    multiplier = question.points * policy.multiplier_for(side, question.id)
    return amount * multiplier


def award(game: Game, question: Question, side: str, amount: int, policy: BonusPolicy) -> int | None:
    """Credit ``side`` for an answer; returns the score delta, or None if rejected.

    The streak bonus is flat and added after the multiplier. Awarding both
    sides on one question is allowed.
    """

    if amount not in AWARD_AMOUNTS:
        return None

    player = game.player(side)
    rival = game.player(opponent(side))
    continuing = game.last_correct == side

    new_streak = player.streak + 1 if continuing else 1
    streak_bonus = STREAK_BONUS_POINTS if new_streak >= STREAK_BONUS_FROM else 0
    delta = points_for(question, side, amount, policy) + streak_bonus

    player.score += delta
    player.streak = new_streak
    player.max_streak = max(player.max_streak, new_streak)
    if continuing:
        rival.streak = 0
    game.last_correct = side
    return delta


def no_answer(game: Game) -> None:
    game.last_correct = None
    game.p1.streak = 0
    game.p2.streak = 0


def adjust_score(game: Game, side: str, delta: int) -> None:
    game.player(side).score += delta

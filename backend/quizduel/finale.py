from __future__ import annotations

from typing import Literal

from .models import FinaleState, Game, Stage

MAX_WAGER = 3

Outcome = Literal["correct", "wrong"]


def clamp_wager(amount: int) -> int:
    return min(MAX_WAGER, max(0, amount))


def reset_finale(game: Game) -> None:
    game.finale = FinaleState()


def set_wager(game: Game, side: str, amount: int, is_finale: bool) -> bool:
    """Place a bet on the finale; only while its CATEGORY stage is showing."""

    if not is_finale or game.session.stage != Stage.CATEGORY:
        return False
    setattr(game.finale.wager, side, clamp_wager(amount))
    return True


def can_finalize(game: Game, side: str, outcome: Outcome, is_finale: bool) -> bool:
    finale = game.finale
    if outcome not in ("correct", "wrong"):
        return False
    if not is_finale or game.session.stage != Stage.ANSWER:
        return False
    if getattr(finale.resolved, side) or getattr(finale.wager, side) == 0:
        return False
    if outcome == "correct" and finale.first_correct not in (None, side):
        return False
    return True


def finalize(game: Game, side: str, outcome: Outcome, is_finale: bool) -> int | None:
    """Settle one side's wager; returns the score delta, or None if rejected.

    Only one side can ever be paid out as correct per finale. Wrong answers
    are charged independently of who answered first.
    """

    if not can_finalize(game, side, outcome, is_finale):
        return None

    finale = game.finale
    bet = getattr(finale.wager, side)
    if outcome == "correct":
        if finale.first_correct is None:
            finale.first_correct = side
        delta = bet
    else:
        delta = -bet

    game.player(side).score += delta
    setattr(finale.resolved, side, True)
    return delta

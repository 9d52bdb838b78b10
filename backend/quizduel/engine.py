from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional, Sequence

from . import bonus, finale, machine, scoring
from .db import settings
from .models import BonusPolicyName, Game, GameConfig, PlayerState, Question, SIDES, Stage

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 40


class GameEngine:
    """Synchronous rules engine for one question catalog.

    Every method takes the ``Game`` aggregate it acts on and mutates it in
    place. Host actions that are not allowed in the current state are
    rejected by returning ``False`` and leave the game untouched.
    """

    def __init__(
        self,
        catalog: Sequence[Question],
        rng: Optional[random.Random] = None,
        bonus_probability: Optional[float] = None,
    ):
        if not catalog:
            raise ValueError("A catalog needs at least one question")
        self.catalog: List[Question] = list(catalog)
        self.rng = rng or random.Random()
        self.bonus_probability = (
            settings.BONUS_PROBABILITY if bonus_probability is None else bonus_probability
        )

    @property
    def last_index(self) -> int:
        return len(self.catalog) - 1

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.catalog]

    def question(self, game: Game) -> Question:
        return self.catalog[machine.clamp_index(game.session.index, self.last_index)]

    def is_finale(self, game: Game) -> bool:
        return game.session.index == self.last_index

    def multiplier(self, game: Game, side: str) -> int:
        q = self.question(game)
        return bonus.make_policy(game, self.question_ids).multiplier_for(side, q.id)

    # -- lifecycle -------------------------------------------------------

    def new_game(self, game_id: str, bonus_policy: Optional[BonusPolicyName] = None) -> Game:
        config = GameConfig(bonus_policy=bonus_policy) if bonus_policy else GameConfig()
        game = Game(id=game_id, config=config)
        self._apply(game, machine.category_entry_effects(0))
        return game

    def reset(self, game: Game) -> None:
        """Reinitialize every entity; only the display names and policy survive."""

        fresh = Game(
            id=game.id,
            config=game.config,
            p1=PlayerState(name=game.p1.name),
            p2=PlayerState(name=game.p2.name),
        )
        for field_name in Game.model_fields:
            setattr(game, field_name, getattr(fresh, field_name))
        self._apply(game, machine.category_entry_effects(0))
        logger.info("game=%s reset", game.id)

    def recover(self, game: Game) -> bool:
        """Pull a persisted session back into range after the catalog changed."""

        clamped = machine.clamp_index(game.session.index, self.last_index)
        if clamped == game.session.index:
            return False
        logger.warning(
            "game=%s index %d out of range, clamped to %d", game.id, game.session.index, clamped
        )
        game.session.index = clamped
        if game.session.stage == Stage.CATEGORY:
            self._apply(game, machine.category_entry_effects(clamped))
        return True

    # -- navigation ------------------------------------------------------

    def advance(self, game: Game) -> bool:
        return self._transition(game, machine.advance(game.session, self.last_index))

    def retreat(self, game: Game) -> bool:
        return self._transition(game, machine.retreat(game.session, self.last_index))

    def _transition(self, game: Game, transition: Optional[machine.Transition]) -> bool:
        if transition is None:
            return False
        logger.info(
            "game=%s %s[%d] -> %s[%d]",
            game.id,
            game.session.stage.value,
            game.session.index,
            transition.stage.value,
            transition.index,
        )
        game.session.stage = transition.stage
        game.session.index = transition.index
        game.session.question_deadline_ts = None
        self._apply(game, transition.effects)
        return True

    def _apply(self, game: Game, effects: Iterable[machine.Effect]) -> None:
        for effect in effects:
            if effect.kind == machine.EffectKind.RESET_FINALE:
                finale.reset_finale(game)
            elif effect.kind == machine.EffectKind.ASSIGN_BONUS:
                # the finale is scored by wagers only, so it never gets a bonus
                if bonus.uses_random(game) and effect.index != self.last_index:
                    q = self.catalog[effect.index]
                    bonus.assign_bonus(game, q.id, self.rng, self.bonus_probability)

    # -- scoring ---------------------------------------------------------

    def award(self, game: Game, side: str, amount: int) -> bool:
        if side not in SIDES or game.session.stage == Stage.RESULTS:
            return False
        policy = bonus.make_policy(game, self.question_ids)
        delta = scoring.award(game, self.question(game), side, amount, policy)
        if delta is None:
            return False
        logger.debug("game=%s award %s +%d", game.id, side, delta)
        return True

    def no_answer(self, game: Game) -> bool:
        scoring.no_answer(game)
        return True

    def adjust_score(self, game: Game, side: str, delta: int) -> bool:
        if side not in SIDES or delta == 0:
            return False
        scoring.adjust_score(game, side, delta)
        logger.debug("game=%s manual adjust %s %+d", game.id, side, delta)
        return True

    def can_arm(self, game: Game, side: str) -> bool:
        return side in SIDES and bonus.can_arm(game, side, self.is_finale(game))

    def arm(self, game: Game, side: str) -> bool:
        return side in SIDES and bonus.arm(game, side, self.is_finale(game))

    # -- finale ----------------------------------------------------------

    def set_wager(self, game: Game, side: str, amount: int) -> bool:
        return side in SIDES and finale.set_wager(game, side, amount, self.is_finale(game))

    def can_finalize(self, game: Game, side: str, outcome: finale.Outcome) -> bool:
        return side in SIDES and finale.can_finalize(game, side, outcome, self.is_finale(game))

    def finalize(self, game: Game, side: str, outcome: finale.Outcome) -> bool:
        if side not in SIDES:
            return False
        delta = finale.finalize(game, side, outcome, self.is_finale(game))
        if delta is None:
            return False
        logger.debug("game=%s finale %s %s %+d", game.id, side, outcome, delta)
        return True

    # -- players ---------------------------------------------------------

    def rename(self, game: Game, side: str, name: str) -> bool:
        name = (name or "").strip()
        if side not in SIDES or not name or len(name) > MAX_NAME_LENGTH:
            return False
        game.player(side).name = name
        return True

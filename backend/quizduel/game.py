from __future__ import annotations
import asyncio
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple

from .catalog import default_catalog, parse_catalog
from .db import settings
from .engine import GameEngine
from .events import event_store
from .models import BonusPolicyName, Game, Question, SIDES, Stage
from .schemas import PowerOut, PublicGameOut, QuestionOut, ResultsOut
from .store import state_store
from .utils import now_ts, results_summary

logger = logging.getLogger(__name__)

ActionResult = Tuple[bool, PublicGameOut]


def build_view(engine: GameEngine, game: Game) -> PublicGameOut:
    q = engine.question(game)
    revealed = game.session.stage in (Stage.ANSWER, Stage.RESULTS)
    players = {side: game.player(side) for side in SIDES}

    results = None
    if game.session.stage == Stage.RESULTS:
        dumped = {side: p.model_dump() for side, p in players.items()}
        results = ResultsOut(**results_summary(dumped["p1"], dumped["p2"]))

    return PublicGameOut(
        id=game.id,
        stage=game.session.stage,
        index=game.session.index,
        total_questions=len(engine.catalog),
        is_finale=engine.is_finale(game),
        bonus_policy=game.config.bonus_policy,
        question=QuestionOut(
            id=q.id,
            category=q.category,
            points=q.points,
            prompt=q.prompt,
            media=q.media,
            answer=q.answer if revealed else None,
            fact=q.fact if revealed else None,
        ),
        players=players,
        last_correct=game.last_correct,
        multipliers={side: engine.multiplier(game, side) for side in SIDES},
        power={
            side: PowerOut(
                available=getattr(game.power, side).available,
                armed_index=getattr(game.power, side).armed_index,
                can_arm=engine.can_arm(game, side),
            )
            for side in SIDES
        },
        finale=game.finale,
        question_deadline_ts=game.session.question_deadline_ts,
        results=results,
    )


class GameController:
    def __init__(
        self,
        store=state_store,
        events=event_store,
        rng: Optional[random.Random] = None,
        question_timer_sec: Optional[float] = None,
    ):
        self.store = store
        self.events = events
        self.rng = rng or random.Random()
        self.question_timer_sec = (
            settings.QUESTION_TIMER_SEC if question_timer_sec is None else question_timer_sec
        )
        self.locks: Dict[str, asyncio.Lock] = {}
        self.timers: Dict[str, asyncio.Task] = {}

    def _lock(self, game_id: str) -> asyncio.Lock:
        self.locks.setdefault(game_id, asyncio.Lock())
        return self.locks[game_id]

    async def _engine(self, game_id: str) -> GameEngine:
        catalog = await self.store.load_catalog(game_id)
        return GameEngine(catalog or list(default_catalog()), rng=self.rng)

    async def _load(self, game_id: str) -> Optional[Tuple[GameEngine, Game]]:
        game = await self.store.load_game(game_id)
        if game is None:
            return None
        engine = await self._engine(game_id)
        before = self.store.dump(game)
        recovered = engine.recover(game)
        if self._resume_countdown(game) or recovered:
            await self.store.save_game(game, before)
        return engine, game

    async def get_game(self, game_id: str) -> PublicGameOut | None:
        async with self._lock(game_id):
            loaded = await self._load(game_id)
        return build_view(*loaded) if loaded else None

    async def create_or_get(self, game_id: str, bonus_policy: Optional[BonusPolicyName] = None) -> PublicGameOut:
        async with self._lock(game_id):
            loaded = await self._load(game_id)
            if loaded:
                return build_view(*loaded)

            engine = await self._engine(game_id)
            game = engine.new_game(game_id, bonus_policy)
            await self.store.save_game(game)
            await self.events.reset(game_id)
            logger.info("game=%s created policy=%s", game_id, game.config.bonus_policy.value)
            return build_view(engine, game)

    async def set_questions(self, game_id: str, questions: List[Question]) -> None:
        catalog = parse_catalog(q.model_dump() for q in questions)
        async with self._lock(game_id):
            await self.store.save_catalog(game_id, catalog)
            logger.info("game=%s catalog replaced (%d questions)", game_id, len(catalog))
            loaded = await self._load(game_id)
            if loaded:
                await self._publish(game_id, "catalog", build_view(*loaded))

    async def reset(self, game_id: str) -> PublicGameOut | None:
        async with self._lock(game_id):
            loaded = await self._load(game_id)
            if not loaded:
                return None
            engine, game = loaded
            self._cancel_countdown(game_id)
            engine.reset(game)
            await self.store.save_game(game)

            # Clients drop derived state when the event log restarts.
            await self.events.reset(game_id)
            view = build_view(engine, game)
            await self._publish(game_id, "reset", view)
            return view

    # -- host actions ------------------------------------------------------

    async def advance(self, game_id: str) -> ActionResult | None:
        return await self._perform(game_id, "advance", lambda e, g: e.advance(g))

    async def retreat(self, game_id: str) -> ActionResult | None:
        return await self._perform(game_id, "retreat", lambda e, g: e.retreat(g))

    async def award(self, game_id: str, side: str, amount: int) -> ActionResult | None:
        return await self._perform(game_id, "award", lambda e, g: e.award(g, side, amount))

    async def no_answer(self, game_id: str) -> ActionResult | None:
        return await self._perform(game_id, "no_answer", lambda e, g: e.no_answer(g))

    async def adjust_score(self, game_id: str, side: str, delta: int) -> ActionResult | None:
        return await self._perform(game_id, "adjust", lambda e, g: e.adjust_score(g, side, delta))

    async def set_wager(self, game_id: str, side: str, amount: int) -> ActionResult | None:
        return await self._perform(game_id, "wager", lambda e, g: e.set_wager(g, side, amount))

    async def finalize(self, game_id: str, side: str, outcome: str) -> ActionResult | None:
        return await self._perform(game_id, "finalize", lambda e, g: e.finalize(g, side, outcome))

    async def arm(self, game_id: str, side: str) -> ActionResult | None:
        return await self._perform(game_id, "arm", lambda e, g: e.arm(g, side))

    async def rename(self, game_id: str, side: str, name: str) -> ActionResult | None:
        return await self._perform(game_id, "rename", lambda e, g: e.rename(g, side, name))

    async def _perform(
        self, game_id: str, action: str, apply: Callable[[GameEngine, Game], bool]
    ) -> ActionResult | None:
        async with self._lock(game_id):
            loaded = await self._load(game_id)
            if not loaded:
                return None
            engine, game = loaded
            before = self.store.dump(game)

            accepted = apply(engine, game)
            if not accepted:
                logger.debug("game=%s %s rejected", game_id, action)
                return False, build_view(engine, game)
            logger.debug("game=%s %s accepted", game_id, action)

            if action == "advance" and game.session.stage == Stage.QUESTION:
                self._start_countdown(game)
            await self.store.save_game(game, before)

            view = build_view(engine, game)
            await self._publish(game_id, action, view)
            return True, view

    async def _publish(self, game_id: str, action: str, view: PublicGameOut) -> None:
        await self.events.append(
            game_id,
            {"type": "state", "action": action, "game": view.model_dump(mode="json")},
        )

    # -- countdown ---------------------------------------------------------

    def _start_countdown(self, game: Game) -> None:
        duration = self.question_timer_sec
        if duration <= 0:
            return
        deadline = now_ts() + duration
        game.session.question_deadline_ts = deadline
        self._schedule(game.id, game.session.index, deadline, duration)

    def _resume_countdown(self, game: Game) -> bool:
        """Re-arm a stored deadline that has no task in this process.

        Returns True when the deadline had to be dropped instead, so the
        caller knows the session changed.
        """

        session = game.session
        if session.question_deadline_ts is None or game.id in self.timers:
            return False
        if session.stage != Stage.QUESTION or self.question_timer_sec <= 0:
            session.question_deadline_ts = None
            return True
        remaining = max(0.0, session.question_deadline_ts - now_ts())
        self._schedule(game.id, session.index, session.question_deadline_ts, remaining)
        return False

    def _schedule(self, game_id: str, index: int, deadline: float, delay: float) -> None:
        self._cancel_countdown(game_id)
        self.timers[game_id] = asyncio.create_task(self._run_countdown(game_id, index, deadline, delay))

    def _cancel_countdown(self, game_id: str) -> None:
        task = self.timers.pop(game_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _run_countdown(self, game_id: str, index: int, deadline: float, duration: float) -> None:
        try:
            await asyncio.sleep(duration)
            async with self._lock(game_id):
                loaded = await self._load(game_id)
                if not loaded:
                    return
                engine, game = loaded
                session = game.session
                if (
                    session.stage != Stage.QUESTION
                    or session.index != index
                    or session.question_deadline_ts != deadline
                ):
                    return

                # Same transition as the host pressing "reveal answer".
                before = self.store.dump(game)
                engine.advance(game)
                await self.store.save_game(game, before)
                logger.info("game=%s countdown expired on question %d", game_id, index)
                await self._publish(game_id, "countdown", build_view(engine, game))
        finally:
            if self.timers.get(game_id) is asyncio.current_task():
                self.timers.pop(game_id, None)


controller = GameController()

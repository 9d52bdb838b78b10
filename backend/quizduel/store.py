from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Literal, NamedTuple, Optional

from pydantic import TypeAdapter, ValidationError

from .db import db, settings
from .models import (
    FinaleState,
    Game,
    GameConfig,
    PlayerState,
    PowerState,
    Question,
    SessionState,
    Side,
    default_player,
)

logger = logging.getLogger(__name__)


class Entity(NamedTuple):
    attr: str
    adapter: TypeAdapter
    default: Callable[[], Any]


ENTITIES: Dict[str, Entity] = {
    "config": Entity("config", TypeAdapter(GameConfig), GameConfig),
    "session": Entity("session", TypeAdapter(SessionState), SessionState),
    "p1": Entity("p1", TypeAdapter(PlayerState), lambda: default_player("p1")),
    "p2": Entity("p2", TypeAdapter(PlayerState), lambda: default_player("p2")),
    "lastCorrect": Entity("last_correct", TypeAdapter(Optional[Side]), lambda: None),
    "bonus": Entity("bonus", TypeAdapter(Dict[str, Literal[1, 2]]), dict),
    "power": Entity("power", TypeAdapter(PowerState), PowerState),
    "finale": Entity("finale", TypeAdapter(FinaleState), FinaleState),
}

CATALOG = "catalog"
_catalog_adapter = TypeAdapter(List[Question])


class StateStore:
    """Key/value persistence for games: one document per entity."""

    collection = db.state

    def key(self, game_id: str, entity: str) -> str:
        return f"{settings.STORAGE_PREFIX}:{game_id}:{entity}"

    async def load(self, game_id: str, entity: str) -> tuple[bool, Any]:
        """Return ``(found, value)``; a malformed value decodes to the default."""

        info = ENTITIES[entity]
        doc = await self.collection.find_one({"_id": self.key(game_id, entity)})
        if doc is None or "value" not in doc:
            return False, info.default()
        try:
            return True, info.adapter.validate_python(doc["value"])
        except (ValidationError, TypeError, ValueError):
            logger.warning("game=%s entity=%s is malformed, using default", game_id, entity)
            return True, info.default()

    async def save(self, game_id: str, entity: str, value: Any) -> None:
        info = ENTITIES[entity]
        await self._put(game_id, entity, info.adapter.dump_python(value, mode="json"))

    async def _put(self, game_id: str, entity: str, encoded: Any) -> None:
        await self.collection.update_one(
            {"_id": self.key(game_id, entity)},
            {"$set": {"game_id": game_id, "entity": entity, "value": encoded}},
            upsert=True,
        )

    async def load_game(self, game_id: str) -> Game | None:
        values: Dict[str, Any] = {}
        exists = False
        for entity, info in ENTITIES.items():
            found, value = await self.load(game_id, entity)
            exists = exists or (entity == "session" and found)
            values[info.attr] = value
        if not exists:
            return None
        return Game(id=game_id, **values)

    def dump(self, game: Game) -> Dict[str, Any]:
        return {
            entity: info.adapter.dump_python(getattr(game, info.attr), mode="json")
            for entity, info in ENTITIES.items()
        }

    async def save_game(self, game: Game, previous: Optional[Dict[str, Any]] = None) -> List[str]:
        """Write back the entities that differ from ``previous``; all when it is None."""

        written = []
        for entity, encoded in self.dump(game).items():
            if previous is not None and previous.get(entity) == encoded:
                continue
            await self._put(game.id, entity, encoded)
            written.append(entity)
        return written

    async def load_catalog(self, game_id: str) -> List[Question] | None:
        doc = await self.collection.find_one({"_id": self.key(game_id, CATALOG)})
        if doc is None:
            return None
        try:
            questions = _catalog_adapter.validate_python(doc.get("value"))
        except (ValidationError, TypeError, ValueError):
            logger.warning("game=%s catalog is malformed, using default", game_id)
            return None
        return questions or None

    async def save_catalog(self, game_id: str, questions: List[Question]) -> None:
        await self._put(game_id, CATALOG, _catalog_adapter.dump_python(questions, mode="json"))


state_store = StateStore()

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from .db import db
from .utils import now_ts

logger = logging.getLogger(__name__)

Event = Dict[str, Any]


class EventStore:
    """Append-only, per-game event log that presentation clients poll over HTTP.

    Sequence numbers come from a counter document per game and never go
    backwards, not even across a reset.
    """

    counters_collection = db.session_event_counters
    events_collection = db.session_events

    async def _next_seq(self, game_id: str) -> int:
        counter = await self.counters_collection.find_one_and_update(
            {"_id": game_id},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        if counter is None:
            # Some Mongo-compatible providers upsert without returning the document.
            counter = await self.counters_collection.find_one({"_id": game_id})
        if not counter or "seq" not in counter:
            logger.warning("game=%s event counter missing, restarting at 1", game_id)
            counter = {"seq": 1}
            await self.counters_collection.update_one({"_id": game_id}, {"$set": counter}, upsert=True)
        return int(counter["seq"])

    async def append(self, game_id: str, payload: Event) -> int:
        """Store *payload* as the next event of the game and return its sequence number."""

        seq = await self._next_seq(game_id)
        await self.events_collection.insert_one(
            {"game_id": game_id, "seq": seq, "timestamp": now_ts(), "payload": payload}
        )
        return seq

    async def list(self, game_id: str, after: Optional[int] = None, limit: int = 200) -> List[Event]:
        query: Dict[str, Any] = {"game_id": game_id}
        if after is not None:
            query["seq"] = {"$gt": after}

        cursor = self.events_collection.find(query).sort("seq", 1).limit(limit)
        return [
            {"seq": doc["seq"], "timestamp": doc.get("timestamp"), "payload": doc.get("payload", {})}
            async for doc in cursor
        ]

    async def reset(self, game_id: str) -> None:
        """Drop the game's events and start the new log with a ``session_reset`` marker."""

        await self.events_collection.delete_many({"game_id": game_id})
        await self.append(game_id, {"type": "session_reset"})


event_store = EventStore()

from __future__ import annotations

import asyncio
import copy
import itertools
import operator
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import ReturnDocument


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ADMIN_KEY: str = "change-me"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080"
    CORS_ORIGIN_REGEX: Optional[str] = None
    STORAGE_PREFIX: str = "quiz_prototype_state_v2"
    QUESTIONS_FILE: Optional[str] = None
    BONUS_POLICY: str = "power"
    BONUS_PROBABILITY: float = 0.10
    QUESTION_TIMER_SEC: float = 0
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


Document = Dict[str, Any]

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "$gt": operator.gt,
}


def _matches(doc: Document, query: Optional[Document]) -> bool:
    for key, expected in (query or {}).items():
        actual = doc.get(key)
        if not isinstance(expected, dict):
            if actual != expected:
                return False
            continue
        for op, operand in expected.items():
            compare = _COMPARISONS.get(op)
            if compare is None:
                raise ValueError(f"Unsupported query operator: {op}")
            if actual is None or not compare(actual, operand):
                return False
    return True


def _apply_update(doc: Document, update: Document) -> Document:
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$inc":
            for key, amount in fields.items():
                doc[key] = doc.get(key, 0) + amount
        else:
            raise ValueError(f"Unsupported update operator: {op}")
    return doc


def _seed(query: Document) -> Document:
    # Upserts start from the equality part of the filter, as Mongo does.
    return {k: copy.deepcopy(v) for k, v in query.items() if not isinstance(v, dict)}


class InMemoryCursor:
    def __init__(self, load: Callable[[], Awaitable[List[Document]]]):
        self._load = load
        self._sort: Optional[tuple] = None
        self._limit: Optional[int] = None
        self._pending: Optional[List[Document]] = None

    def sort(self, key: str, direction: int = 1) -> "InMemoryCursor":
        self._sort = (key, direction)
        return self

    def limit(self, limit: int) -> "InMemoryCursor":
        self._limit = limit
        return self

    def _shape(self, docs: List[Document]) -> List[Document]:
        if self._sort is not None:
            key, direction = self._sort
            docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return docs if self._limit is None else docs[: self._limit]

    def __aiter__(self):
        return self

    async def __anext__(self) -> Document:
        if self._pending is None:
            self._pending = self._shape(await self._load())
        if not self._pending:
            raise StopAsyncIteration
        return self._pending.pop(0)


class InMemoryCollection:
    """Just enough of the Motor collection API for the state and event stores.

    Documents are kept by ``_id`` in insertion order; inserts without an
    ``_id`` get a generated integer one.
    """

    def __init__(self):
        self._docs: Dict[Any, Document] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    def _select(self, query: Optional[Document]) -> Iterable[Document]:
        if query and "_id" in query and not isinstance(query["_id"], dict):
            doc = self._docs.get(query["_id"])
            return [doc] if doc is not None and _matches(doc, query) else []
        return [doc for doc in self._docs.values() if _matches(doc, query)]

    def _store(self, doc: Document) -> Document:
        doc.setdefault("_id", next(self._ids))
        self._docs[doc["_id"]] = doc
        return doc

    async def _snapshot(self, query: Optional[Document]) -> List[Document]:
        async with self._lock:
            return [copy.deepcopy(doc) for doc in self._select(query)]

    async def find_one(self, query: Optional[Document] = None) -> Optional[Document]:
        found = await self._snapshot(query)
        return found[0] if found else None

    def find(self, query: Optional[Document] = None) -> InMemoryCursor:
        return InMemoryCursor(lambda: self._snapshot(query))

    async def insert_one(self, document: Document) -> None:
        async with self._lock:
            self._store(copy.deepcopy(document))

    async def update_one(self, query: Document, update: Document, upsert: bool = False) -> None:
        await self.find_one_and_update(query, update, upsert=upsert)

    async def delete_many(self, query: Document) -> None:
        async with self._lock:
            for doc in list(self._select(query)):
                del self._docs[doc["_id"]]

    async def find_one_and_update(
        self,
        query: Document,
        update: Document,
        *,
        upsert: bool = False,
        return_document: ReturnDocument = ReturnDocument.BEFORE,
    ) -> Optional[Document]:
        async with self._lock:
            hits = list(self._select(query))
            if hits:
                before = copy.deepcopy(hits[0])
                after = _apply_update(hits[0], update)
            elif upsert:
                before = None
                after = self._store(_apply_update(_seed(query), update))
            else:
                return None
            return copy.deepcopy(after) if return_document == ReturnDocument.AFTER else before


class InMemoryDatabase:
    def __init__(self):
        self.state = InMemoryCollection()
        self.session_event_counters = InMemoryCollection()
        self.session_events = InMemoryCollection()


db: Any = InMemoryDatabase()

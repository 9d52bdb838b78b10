from __future__ import annotations

from unittest import IsolatedAsyncioTestCase

from pymongo import ReturnDocument

from .db import InMemoryCollection


class InMemoryCollectionTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.collection = InMemoryCollection()

    async def test_find_one_and_update_returns_requested_document(self):
        after = await self.collection.find_one_and_update(
            {"_id": "c"}, {"$inc": {"seq": 1}}, upsert=True, return_document=ReturnDocument.AFTER
        )
        self.assertEqual(after, {"_id": "c", "seq": 1})

        before = await self.collection.find_one_and_update({"_id": "c"}, {"$inc": {"seq": 1}})
        self.assertEqual(before["seq"], 1)
        self.assertEqual((await self.collection.find_one({"_id": "c"}))["seq"], 2)

    async def test_gt_filter_sort_and_limit(self):
        for seq in (3, 1, 2, 4):
            await self.collection.insert_one({"game_id": "g", "seq": seq})
        await self.collection.insert_one({"game_id": "other", "seq": 9})

        cursor = self.collection.find({"game_id": "g", "seq": {"$gt": 1}}).sort("seq", 1).limit(2)
        self.assertEqual([doc["seq"] async for doc in cursor], [2, 3])

    async def test_unknown_operators_are_refused(self):
        await self.collection.insert_one({"seq": 1})
        with self.assertRaises(ValueError):
            await self.collection.find_one({"seq": {"$gte": 1}})
        with self.assertRaises(ValueError):
            await self.collection.update_one({"seq": 1}, {"$push": {"tags": "x"}})

from __future__ import annotations

from unittest import TestCase, mock

from fastapi.testclient import TestClient

from . import main
from .db import InMemoryCollection, settings
from .events import EventStore
from .game import GameController
from .store import StateStore

ADMIN = {"X-Admin-Key": settings.ADMIN_KEY}

QUESTIONS = [
    {"id": "a", "order": 1, "category": "Clubs", "points": 1, "prompt": "First?", "answer": "One"},
    {"id": "b", "order": 2, "category": "Finale", "points": 3, "prompt": "Last?", "answer": "Two"},
]


def _fresh_controller() -> GameController:
    store = StateStore()
    store.collection = InMemoryCollection()
    events = EventStore()
    events.counters_collection = InMemoryCollection()
    events.events_collection = InMemoryCollection()
    return GameController(store=store, events=events, question_timer_sec=0)


class ApiTests(TestCase):
    def setUp(self) -> None:
        self.controller = _fresh_controller()
        patcher = mock.patch.object(main, "controller", self.controller)
        patcher.start()
        self.addCleanup(patcher.stop)
        events_patcher = mock.patch.object(main, "event_store", self.controller.events)
        events_patcher.start()
        self.addCleanup(events_patcher.stop)
        self.client = TestClient(main.app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def _upload(self, session_id: str = "room"):
        return self.client.post(
            "/api/admin/questions",
            json={"session_id": session_id, "questions": QUESTIONS},
            headers=ADMIN,
        )

    def test_admin_routes_require_key(self):
        self.assertEqual(self.client.get("/api/admin/verify").status_code, 401)
        resp = self.client.get("/api/admin/verify", headers={"X-Admin-Key": "wrong"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(self.client.get("/api/admin/verify", headers=ADMIN).json(), {"ok": True})

    def test_unknown_session_is_404(self):
        self.assertEqual(self.client.get("/api/session/nope").status_code, 404)
        self.assertEqual(self.client.post("/api/session/nope/advance").status_code, 404)
        resp = self.client.post("/api/admin/reset", json={"session_id": "nope"}, headers=ADMIN)
        self.assertEqual(resp.status_code, 404)

    def test_invalid_catalog_is_400(self):
        resp = self.client.post(
            "/api/admin/questions",
            json={"session_id": "room", "questions": [QUESTIONS[0], QUESTIONS[0]]},
            headers=ADMIN,
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("duplicate", resp.json()["detail"].lower())

    def test_invalid_award_amount_is_422(self):
        self._upload()
        self.client.post("/api/session", json={"session_id": "room"})
        resp = self.client.post("/api/session/room/award", json={"side": "p1", "amount": 5})
        self.assertEqual(resp.status_code, 422)
        resp = self.client.post("/api/session/room/award", json={"side": "p3", "amount": 1})
        self.assertEqual(resp.status_code, 422)

    def test_full_game_over_http(self):
        self.assertEqual(self._upload().status_code, 200)
        resp = self.client.post("/api/session", json={"session_id": "room", "bonus_policy": "power"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual((body["stage"], body["index"]), ("category", 0))
        self.assertEqual(body["total_questions"], 2)

        self.client.post("/api/session/room/rename", json={"side": "p2", "name": "  Bea  "})
        self.client.post("/api/session/room/arm", json={"side": "p1"})
        self.client.post("/api/session/room/advance")
        body = self.client.post("/api/session/room/advance").json()
        self.assertTrue(body["accepted"])
        self.assertEqual(body["game"]["question"]["answer"], "One")

        body = self.client.post("/api/session/room/award", json={"side": "p1", "amount": 2}).json()
        self.assertEqual(body["game"]["players"]["p1"]["score"], 4)
        self.assertEqual(body["game"]["players"]["p2"]["name"], "Bea")

        body = self.client.post("/api/session/room/advance").json()
        self.assertTrue(body["game"]["is_finale"])
        self.client.post("/api/session/room/wager", json={"side": "p2", "amount": 3})
        self.client.post("/api/session/room/advance")
        self.client.post("/api/session/room/advance")

        body = self.client.post("/api/session/room/finalize", json={"side": "p2", "outcome": "correct"}).json()
        self.assertTrue(body["accepted"])
        self.assertEqual(body["game"]["players"]["p2"]["score"], 3)

        body = self.client.post("/api/session/room/advance").json()
        self.assertEqual(body["game"]["stage"], "results")
        self.assertEqual(body["game"]["results"]["winner"], "p1")

        body = self.client.post("/api/session/room/advance").json()
        self.assertFalse(body["accepted"])

    def test_events_and_reset(self):
        self._upload()
        self.client.post("/api/session", json={"session_id": "room"})
        self.client.post("/api/session/room/advance")
        self.client.post("/api/session/room/adjust", json={"side": "p2", "delta": -2})

        data = self.client.get("/api/session/room/events").json()
        actions = [e["payload"].get("action") for e in data["events"]]
        self.assertEqual(actions, [None, "advance", "adjust"])
        self.assertEqual(data["latest_seq"], data["events"][-1]["seq"])

        after = self.client.get("/api/session/room/events", params={"after": data["latest_seq"]}).json()
        self.assertEqual(after["events"], [])

        resp = self.client.post("/api/admin/reset", json={"session_id": "room"}, headers=ADMIN)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["players"]["p2"]["score"], 0)
        self.assertEqual(resp.json()["stage"], "category")

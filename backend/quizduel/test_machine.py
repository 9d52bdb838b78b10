from __future__ import annotations

from unittest import TestCase

from . import machine
from .engine import GameEngine
from .models import BonusPolicyName, Question, SessionState, Stage


def _catalog(size: int) -> list[Question]:
    return [
        Question(id=f"q{i}", order=i, category="General", points=1, prompt=f"Prompt {i}", answer=f"Answer {i}")
        for i in range(size)
    ]


class TransitionTableTests(TestCase):
    def test_advance_table(self):
        cases = [
            ((Stage.CATEGORY, 0), (Stage.QUESTION, 0)),
            ((Stage.QUESTION, 1), (Stage.ANSWER, 1)),
            ((Stage.ANSWER, 1), (Stage.CATEGORY, 2)),
            ((Stage.ANSWER, 2), (Stage.RESULTS, 2)),
        ]
        for (stage, index), expected in cases:
            with self.subTest(stage=stage, index=index):
                t = machine.advance(SessionState(stage=stage, index=index), last_index=2)
                self.assertEqual((t.stage, t.index), expected)

        self.assertIsNone(machine.advance(SessionState(stage=Stage.RESULTS, index=2), last_index=2))

    def test_retreat_table(self):
        cases = [
            ((Stage.QUESTION, 1), (Stage.CATEGORY, 1)),
            ((Stage.ANSWER, 1), (Stage.QUESTION, 1)),
            ((Stage.RESULTS, 2), (Stage.ANSWER, 2)),
            ((Stage.CATEGORY, 2), (Stage.ANSWER, 1)),
        ]
        for (stage, index), expected in cases:
            with self.subTest(stage=stage, index=index):
                t = machine.retreat(SessionState(stage=stage, index=index), last_index=2)
                self.assertEqual((t.stage, t.index), expected)

        self.assertIsNone(machine.retreat(SessionState(stage=Stage.CATEGORY, index=0), last_index=2))

    def test_only_category_entry_carries_effects(self):
        into_category = machine.advance(SessionState(stage=Stage.ANSWER, index=0), last_index=2)
        self.assertEqual(
            [e.kind for e in into_category.effects],
            [machine.EffectKind.RESET_FINALE, machine.EffectKind.ASSIGN_BONUS],
        )
        self.assertTrue(all(e.index == 1 for e in into_category.effects))

        back_to_answer = machine.retreat(SessionState(stage=Stage.CATEGORY, index=2), last_index=2)
        self.assertEqual(back_to_answer.effects, [])

    def test_clamp_index(self):
        self.assertEqual(machine.clamp_index(7, 2), 2)
        self.assertEqual(machine.clamp_index(-1, 2), 0)
        self.assertEqual(machine.clamp_index(3, -1), 0)


class EngineNavigationTests(TestCase):
    def test_full_walk_and_back(self):
        engine = GameEngine(_catalog(2))
        game = engine.new_game("g", BonusPolicyName.POWER)

        seen = []
        while engine.advance(game):
            seen.append((game.session.stage, game.session.index))
        self.assertEqual(
            seen,
            [
                (Stage.QUESTION, 0),
                (Stage.ANSWER, 0),
                (Stage.CATEGORY, 1),
                (Stage.QUESTION, 1),
                (Stage.ANSWER, 1),
                (Stage.RESULTS, 1),
            ],
        )
        self.assertFalse(engine.advance(game))
        self.assertEqual(game.session.index, 1)

        self.assertTrue(engine.retreat(game))
        self.assertEqual((game.session.stage, game.session.index), (Stage.ANSWER, 1))

    def test_retreat_at_start_is_noop(self):
        engine = GameEngine(_catalog(2))
        game = engine.new_game("g", BonusPolicyName.POWER)
        self.assertFalse(engine.retreat(game))
        self.assertEqual((game.session.stage, game.session.index), (Stage.CATEGORY, 0))

    def test_transition_clears_countdown_deadline(self):
        engine = GameEngine(_catalog(2))
        game = engine.new_game("g", BonusPolicyName.POWER)
        engine.advance(game)
        game.session.question_deadline_ts = 123.0
        engine.retreat(game)
        self.assertIsNone(game.session.question_deadline_ts)

    def test_single_question_catalog(self):
        engine = GameEngine(_catalog(1))
        game = engine.new_game("g", BonusPolicyName.POWER)
        self.assertTrue(engine.is_finale(game))
        engine.advance(game)
        engine.advance(game)
        engine.advance(game)
        self.assertEqual(game.session.stage, Stage.RESULTS)

    def test_empty_catalog_is_refused(self):
        with self.assertRaises(ValueError):
            GameEngine([])


class RecoveryTests(TestCase):
    def test_index_is_clamped_after_catalog_shrinks(self):
        big = GameEngine(_catalog(5))
        game = big.new_game("g", BonusPolicyName.POWER)
        for _ in range(10):
            big.advance(game)
        self.assertEqual((game.session.stage, game.session.index), (Stage.QUESTION, 3))

        small = GameEngine(_catalog(2))
        self.assertTrue(small.recover(game))
        self.assertEqual((game.session.stage, game.session.index), (Stage.QUESTION, 1))
        self.assertFalse(small.recover(game))

    def test_clamp_onto_category_runs_entry_effects(self):
        big = GameEngine(_catalog(5))
        game = big.new_game("g", BonusPolicyName.POWER)
        game.session.index = 4
        game.finale.wager.p1 = 3

        small = GameEngine(_catalog(3))
        small.recover(game)
        self.assertEqual(game.session.index, 2)
        self.assertEqual(game.finale.wager.p1, 0)

    def test_reset_keeps_names_and_policy(self):
        engine = GameEngine(_catalog(3))
        game = engine.new_game("g", BonusPolicyName.BOTH)
        engine.rename(game, "p1", "Alice")
        engine.arm(game, "p2")
        engine.advance(game)
        engine.advance(game)
        engine.award(game, "p1", 3)

        engine.reset(game)

        self.assertEqual(game.id, "g")
        self.assertEqual(game.config.bonus_policy, BonusPolicyName.BOTH)
        self.assertEqual(game.p1.name, "Alice")
        self.assertEqual(game.p2.name, "Player 2")
        self.assertEqual((game.p1.score, game.p1.streak, game.p1.max_streak), (0, 0, 0))
        self.assertIsNone(game.last_correct)
        self.assertTrue(game.power.p2.available)
        self.assertIsNone(game.power.p2.armed_index)
        self.assertEqual((game.session.stage, game.session.index), (Stage.CATEGORY, 0))
        # question 0 is visited again, so it gets a fresh draw
        self.assertEqual(list(game.bonus), ["q0"])

    def test_rename_rules(self):
        engine = GameEngine(_catalog(2))
        game = engine.new_game("g", BonusPolicyName.POWER)
        self.assertTrue(engine.rename(game, "p2", "  Bob  "))
        self.assertEqual(game.p2.name, "Bob")
        self.assertFalse(engine.rename(game, "p2", "   "))
        self.assertFalse(engine.rename(game, "p2", "x" * 41))
        self.assertEqual(game.p2.name, "Bob")

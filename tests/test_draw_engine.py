from __future__ import annotations

import random
import unittest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from prizepool.db.engine import get_sessionmaker, make_engine
from prizepool.draw import (
    ALREADY_WINNER,
    NO_PRIZES_LEFT,
    DrawEngine,
    DrawOutcome,
)
from prizepool.errors import InvalidInputError, StoreUnavailableError
from prizepool.models import Base, PrizeToken, Winner


class FixedRandom:
    """Random source that always returns ``value`` and counts its draws."""

    def __init__(self, value: float) -> None:
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


class DrawEngineTestCase(unittest.TestCase):
    pool_size = 1

    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        with self.Session.begin() as session:
            PrizeToken.seed(session, self.pool_size)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _engine(self, rng=None, **kwargs) -> DrawEngine:
        return DrawEngine(self.Session, rng=rng or FixedRandom(0.5), **kwargs)

    def _winner_count(self) -> int:
        with self.Session() as session:
            return Winner.count(session)


class SinglePrizeScenarioTests(DrawEngineTestCase):
    def test_first_request_wins_then_already_winner_then_empty(self) -> None:
        engine = self._engine()

        first = engine.draw("d1", rate=1.0)
        self.assertEqual(first, DrawOutcome(True, 0))
        self.assertEqual(first.to_payload(), {"won": True, "remaining": 0})

        repeat = engine.draw("d1", rate=1.0)
        self.assertEqual(
            repeat.to_payload(),
            {"won": False, "reason": ALREADY_WINNER, "remaining": 0},
        )

        other = engine.draw("d2", rate=1.0)
        self.assertEqual(
            other.to_payload(),
            {"won": False, "reason": NO_PRIZES_LEFT, "remaining": 0},
        )
        self.assertEqual(self._winner_count(), 1)

    def test_winner_is_not_rolled_again(self) -> None:
        rng = FixedRandom(0.0)
        engine = self._engine(rng)

        engine.draw("d1", rate=1.0)
        self.assertEqual(rng.calls, 1)
        engine.draw("d1", rate=1.0)
        self.assertEqual(rng.calls, 1)

    def test_exhausted_pool_does_not_register_winner(self) -> None:
        engine = self._engine()
        engine.draw("d1", rate=1.0)
        engine.draw("d2", rate=1.0)

        with self.Session() as session:
            self.assertFalse(Winner.has_won(session, "d2"))
            self.assertIsNone(PrizeToken.get_by_device(session, "d2"))

    def test_winning_token_belongs_to_device(self) -> None:
        self._engine().draw("d1", rate=1.0)

        with self.Session() as session:
            token = PrizeToken.get_by_device(session, "d1")
            assert token is not None
            self.assertIsNotNone(token.claimed_at)


class GateTests(DrawEngineTestCase):
    pool_size = 10

    def test_zero_rate_never_touches_pool(self) -> None:
        engine = self._engine(random.Random(1234))

        outcomes = [engine.draw(f"d{index}", rate=0.0) for index in range(10)]

        for outcome in outcomes:
            self.assertEqual(outcome.to_payload(), {"won": False, "remaining": 10})
        self.assertEqual(engine.remaining(), 10)
        self.assertEqual(self._winner_count(), 0)

    def test_draw_at_rate_boundary_loses(self) -> None:
        outcome = self._engine(FixedRandom(0.3)).draw("d1", rate=0.3)

        self.assertFalse(outcome.won)
        self.assertIsNone(outcome.reason)
        self.assertEqual(outcome.remaining, 10)

    def test_draw_below_rate_wins(self) -> None:
        outcome = self._engine(FixedRandom(0.29)).draw("d1", rate=0.3)

        self.assertEqual(outcome, DrawOutcome(True, 9))

    def test_out_of_range_rates_are_not_clamped(self) -> None:
        engine = self._engine(FixedRandom(0.999))

        self.assertFalse(engine.draw("negative", rate=-0.5).won)
        self.assertTrue(engine.draw("above-one", rate=1.5).won)

    def test_default_rate_applies_when_rate_missing(self) -> None:
        engine = self._engine(FixedRandom(0.14), default_rate=0.15)
        self.assertTrue(engine.draw("d1").won)

        engine = self._engine(FixedRandom(0.15), default_rate=0.15)
        self.assertFalse(engine.draw("d2").won)

    def test_non_numeric_rate_uses_default(self) -> None:
        engine = self._engine(FixedRandom(0.5), default_rate=1.0)

        self.assertTrue(engine.draw("d1", rate="not-a-number").won)
        self.assertTrue(engine.draw("d2", rate=float("nan")).won)

    def test_overflowing_rate_uses_default(self) -> None:
        engine = self._engine(FixedRandom(0.5), default_rate=0.0)

        outcome = engine.draw("d1", rate=10**400)

        self.assertEqual(outcome, DrawOutcome(False, 10))

    def test_numeric_string_rate_is_coerced(self) -> None:
        engine = self._engine(FixedRandom(0.5), default_rate=0.0)

        self.assertTrue(engine.draw("d1", rate="0.75").won)

    def test_seeded_generator_is_reproducible(self) -> None:
        first = self._engine(random.Random(7))
        decisions = [first.draw(f"a{index}", rate=0.5).won for index in range(8)]

        with self.Session.begin() as session:
            session.query(Winner).delete()
            session.query(PrizeToken).delete()
            PrizeToken.seed(session, self.pool_size)

        second = self._engine(random.Random(7))
        replay = [second.draw(f"a{index}", rate=0.5).won for index in range(8)]

        self.assertEqual(decisions, replay)


class StateTests(DrawEngineTestCase):
    pool_size = 3

    def test_state_reports_counters(self) -> None:
        engine = self._engine(max_prizes=10)
        engine.draw("d1", rate=1.0)

        state = engine.state()

        self.assertEqual(state.max_prizes, 10)
        self.assertEqual(state.awarded, 1)
        self.assertEqual(state.remaining, 2)
        self.assertEqual(
            state.to_payload(), {"max": 10, "awarded": 1, "remaining": 2}
        )


class InvalidInputTests(unittest.TestCase):
    def setUp(self) -> None:
        # No tables: any store access would fail loudly.
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        self.draws = DrawEngine(get_sessionmaker(self.engine), rng=FixedRandom(0.0))

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_rejects_bad_device_ids_before_store_access(self) -> None:
        for device_id in (None, "", 42, b"bytes"):
            with self.subTest(device_id=device_id):
                with self.assertRaises(InvalidInputError):
                    self.draws.draw(device_id, rate=1.0)  # type: ignore[arg-type]

    def test_invalid_input_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            self.draws.draw("")


class StoreFailureTests(DrawEngineTestCase):
    def test_missing_schema_surfaces_as_store_unavailable(self) -> None:
        engine = make_engine("sqlite+pysqlite:///:memory:")
        try:
            draws = DrawEngine(get_sessionmaker(engine), rng=FixedRandom(0.0))
            with self.assertRaises(StoreUnavailableError) as ctx:
                draws.draw("d1", rate=1.0)
            self.assertIsInstance(ctx.exception.__cause__, OperationalError)
        finally:
            engine.dispose()

    def test_failed_registration_rolls_back_claim(self) -> None:
        failure = OperationalError("INSERT INTO winners", {}, Exception("disk I/O error"))
        engine = self._engine(FixedRandom(0.0))

        with patch.object(Winner, "record_win", side_effect=failure):
            with self.assertRaises(StoreUnavailableError):
                engine.draw("d1", rate=1.0)

        self.assertEqual(engine.remaining(), 1)
        with self.Session() as session:
            self.assertIsNone(PrizeToken.get_by_device(session, "d1"))
            self.assertFalse(Winner.has_won(session, "d1"))

    def test_concurrent_registration_rolls_back_claim(self) -> None:
        engine = self._engine(FixedRandom(0.0))

        with patch.object(Winner, "record_win", return_value=False):
            outcome = engine.draw("d1", rate=1.0)

        self.assertEqual(outcome, DrawOutcome(False, 1, ALREADY_WINNER))
        with self.Session() as session:
            self.assertIsNone(PrizeToken.get_by_device(session, "d1"))


if __name__ == "__main__":
    unittest.main()

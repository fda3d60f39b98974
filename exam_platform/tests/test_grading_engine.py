"""
Grading engine tests: objective marking, ungraded answers, idempotence
and the pass mark.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from exam_platform.exceptions import InvariantViolation
from exam_platform.services.answer_register import save_answer
from exam_platform.services.attempt_service import get_attempt, start_attempt, submit_attempt
from exam_platform.services.grading_engine import GradingConfig, grade_attempt, is_passing, pass_mark
from exam_platform.tests.conftest import NOW, correct_option_id, wrong_option_id


async def answered_attempt(db, scenario, q1_option, q2_option=None, text=None):
    attempt = await start_attempt(db, scenario.exam, scenario.alice.id, NOW)
    at = NOW + timedelta(minutes=1)
    await save_answer(db, attempt.id, scenario.q1.id, {"selected_option_id": q1_option}, at)
    if q2_option is not None:
        await save_answer(db, attempt.id, scenario.q2.id, {"selected_option_id": q2_option}, at)
    if text is not None:
        await save_answer(db, attempt.id, scenario.q3.id, {"answer_text": text}, at)
    return attempt


class TestMarking:

    async def test_correct_and_wrong_options(self, db_session, scenario):
        attempt = await answered_attempt(db_session, scenario,
                                         correct_option_id(scenario.q1), wrong_option_id(scenario.q2))
        attempt = await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=2))

        marks = {a.question_id: a.marks_awarded for a in attempt.answers}
        assert marks[scenario.q1.id] == 10
        assert marks[scenario.q2.id] == 0
        assert attempt.score == 10

    async def test_free_text_left_ungraded(self, db_session, scenario):
        attempt = await answered_attempt(db_session, scenario, correct_option_id(scenario.q1), text="Inertia")
        attempt = await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=2))

        free_text = next(a for a in attempt.answers if a.question_id == scenario.q3.id)
        assert free_text.marks_awarded is None
        assert attempt.score == 10

    async def test_cleared_objective_selection_left_ungraded(self, db_session, scenario):
        attempt = await answered_attempt(db_session, scenario, None)
        attempt = await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=2))

        assert attempt.answers[0].marks_awarded is None
        assert attempt.score == 0

    async def test_score_never_exceeds_total_marks(self, db_session, scenario):
        attempt = await answered_attempt(db_session, scenario,
                                         correct_option_id(scenario.q1), correct_option_id(scenario.q2), "x")
        attempt = await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=2))
        assert 0 <= attempt.score <= scenario.exam.total_marks


class TestIdempotence:

    async def test_grading_twice_gives_same_score(self, db_session, scenario):
        attempt = await answered_attempt(db_session, scenario,
                                         correct_option_id(scenario.q1), wrong_option_id(scenario.q2))
        attempt = await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=2))

        first = await grade_attempt(db_session, attempt)
        second = await grade_attempt(db_session, await get_attempt(db_session, attempt.id))

        assert first == second == attempt.score == Decimal("10.00")

    async def test_grading_open_attempt_is_invariant_violation(self, db_session, scenario):
        attempt = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)
        with pytest.raises(InvariantViolation):
            await grade_attempt(db_session, attempt)


class TestPassMark:

    def test_default_threshold_is_forty_percent(self):
        assert pass_mark(30, GradingConfig()) == Decimal("12.00")
        assert is_passing(Decimal("12"), 30, GradingConfig())
        assert not is_passing(Decimal("11.99"), 30, GradingConfig())

    def test_threshold_is_configurable(self):
        config = GradingConfig(pass_threshold_percent=50)
        assert not is_passing(Decimal("12"), 30, config)
        assert is_passing(Decimal("15"), 30, config)

    def test_ungraded_score_does_not_pass(self):
        assert not is_passing(None, 30, GradingConfig())

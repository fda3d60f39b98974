"""
Expiry sweep tests: only attempts out of time are closed, and sweeping
again changes nothing.
"""
from datetime import timedelta

from exam_platform.core.clock import FrozenClock
from exam_platform.orm.exam_attempt import AttemptStatus, ExamAttempt
from exam_platform.services.attempt_service import get_attempt, start_attempt, submit_attempt
from exam_platform.services.exam_service import create_exam, publish_exam
from exam_platform.services.expiry_reaper import find_expired_attempt_ids, sweep_expired_attempts
from exam_platform.tasks.expiry_sweep import run_sweep_once
from exam_platform.tests.conftest import NOW


class TestSweep:

    async def test_sweep_closes_only_expired_attempts(self, db_session, scenario):
        early = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)
        late = await start_attempt(db_session, scenario.exam, scenario.bob.id, NOW + timedelta(minutes=30))

        closed = await sweep_expired_attempts(db_session, NOW + timedelta(minutes=61))

        assert closed == 1
        assert (await get_attempt(db_session, early.id)).status == AttemptStatus.AUTO_SUBMITTED
        assert (await get_attempt(db_session, late.id)).status == AttemptStatus.IN_PROGRESS

    async def test_sweep_is_idempotent(self, db_session, scenario):
        attempt = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)

        assert await sweep_expired_attempts(db_session, NOW + timedelta(minutes=61)) == 1
        first = await get_attempt(db_session, attempt.id)
        assert await sweep_expired_attempts(db_session, NOW + timedelta(minutes=75)) == 0
        second = await get_attempt(db_session, attempt.id)

        assert second.submitted_at == first.submitted_at
        assert second.score == first.score

    async def test_sweep_ignores_submitted_attempts(self, db_session, scenario):
        attempt = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)
        await submit_attempt(db_session, attempt.id, NOW + timedelta(minutes=10))

        assert await find_expired_attempt_ids(db_session, NOW + timedelta(minutes=61)) == []
        assert (await get_attempt(db_session, attempt.id)).status == AttemptStatus.SUBMITTED

    async def test_nothing_expired_within_budget(self, db_session, scenario):
        await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)
        assert await sweep_expired_attempts(db_session, NOW + timedelta(minutes=59)) == 0

    async def test_expired_ids_follow_each_exam_duration(self, db_session, session_factory, scenario, grading_config):
        short_exam = await create_exam(
            db_session,
            organization_id=scenario.org.id,
            batch_id=scenario.batch.id,
            paper_id=scenario.paper.id,
            title="Physics Quick Check",
            start_time=NOW - timedelta(hours=1),
            end_time=NOW + timedelta(hours=1),
            duration_minutes=15,
        )
        short_exam = await publish_exam(db_session, short_exam.id, grading_config)
        long_attempt = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)
        short_attempt = await start_attempt(db_session, short_exam, scenario.bob.id, NOW)
        late_short = await start_attempt(db_session, short_exam, scenario.alice.id, NOW + timedelta(minutes=10))

        async with session_factory() as db:
            assert await find_expired_attempt_ids(db, NOW + timedelta(minutes=14, seconds=59)) == []
            assert await find_expired_attempt_ids(db, NOW + timedelta(minutes=15)) == [short_attempt.id]
            assert await find_expired_attempt_ids(db, NOW + timedelta(minutes=59)) == [
                short_attempt.id, late_short.id
            ]
            assert await find_expired_attempt_ids(db, NOW + timedelta(minutes=60)) == [
                long_attempt.id, short_attempt.id, late_short.id
            ]
            assert not any(isinstance(obj, ExamAttempt) for obj in db.sync_session.identity_map.values())


class TestSweepTask:

    async def test_run_sweep_once_uses_given_session_factory_and_clock(self, db_session, session_factory, scenario):
        attempt = await start_attempt(db_session, scenario.exam, scenario.alice.id, NOW)

        closed = await run_sweep_once(session_factory, FrozenClock(NOW + timedelta(minutes=60)))

        assert closed == 1
        assert (await get_attempt(db_session, attempt.id)).status == AttemptStatus.AUTO_SUBMITTED

"""
Shared fixtures: a throwaway file-backed SQLite database per test and a
published exam with a small paper.

File-backed (not :memory:) so that concurrent tests get real, separate
connections competing for the same database.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from exam_platform.core.clock import FrozenClock
from exam_platform.database import build_engine, build_sessionmaker, init_db
from exam_platform.orm.organization import Organization
from exam_platform.orm.batch import Batch
from exam_platform.orm.student import Student
from exam_platform.services.batch_service import add_member
from exam_platform.services.exam_service import create_exam, publish_exam
from exam_platform.services.grading_engine import GradingConfig
from exam_platform.services.question_set_service import create_paper, add_question

NOW = datetime(2025, 3, 10, 9, 0, 0)

OBJECTIVE_OPTIONS = [
    {"text": "A", "is_correct": False},
    {"text": "B", "is_correct": True},
]


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'exam_platform_test.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def grading_config() -> GradingConfig:
    return GradingConfig()


async def make_student(db: AsyncSession, organization_id: int, name: str) -> Student:
    student = Student(
        organization_id=organization_id,
        full_name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com"
    )
    db.add(student)
    await db.commit()
    return student


@pytest_asyncio.fixture
async def scenario(db_session: AsyncSession, grading_config: GradingConfig) -> SimpleNamespace:
    """
    Published exam, window [NOW-1h, NOW+1h], duration 60 minutes.

    Paper: two objective questions worth 10 (correct option B) and one
    free-text question worth 10. Alice and Bob are in the batch, Mallory
    is not.
    """
    org = Organization(name="Riverside Academy")
    db_session.add(org)
    await db_session.commit()

    batch = Batch(organization_id=org.id, name="Class 10-A")
    db_session.add(batch)
    await db_session.commit()

    alice = await make_student(db_session, org.id, "Alice Kumar")
    bob = await make_student(db_session, org.id, "Bob Mehta")
    mallory = await make_student(db_session, org.id, "Mallory Singh")
    await add_member(db_session, batch.id, alice.id)
    await add_member(db_session, batch.id, bob.id)

    paper = await create_paper(db_session, org.id, "Physics Unit Test", subject="Physics")
    q1 = await add_question(db_session, paper.id, "objective", "Unit of force?", 10, OBJECTIVE_OPTIONS)
    q2 = await add_question(db_session, paper.id, "objective", "Unit of energy?", 10, OBJECTIVE_OPTIONS)
    q3 = await add_question(db_session, paper.id, "free_text", "State Newton's first law.", 10)

    exam = await create_exam(
        db_session,
        organization_id=org.id,
        batch_id=batch.id,
        paper_id=paper.id,
        title="Physics Unit Test 1",
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1),
        duration_minutes=60,
    )
    exam = await publish_exam(db_session, exam.id, grading_config)

    return SimpleNamespace(
        org=org,
        batch=batch,
        alice=alice,
        bob=bob,
        mallory=mallory,
        paper=paper,
        q1=q1,
        q2=q2,
        q3=q3,
        exam=exam,
    )


def correct_option_id(question) -> int:
    return next(o.id for o in question.options if o.is_correct)


def wrong_option_id(question) -> int:
    return next(o.id for o in question.options if not o.is_correct)

"""
Pytest configuration and fixtures for quiz engine tests.
"""
import sys
import os
import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Must be set before core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_quiz.db")
os.environ.setdefault("ENV", "development")

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from models.base import Base
from models import quiz, question, answer, result  # noqa: F401
from services.quiz_service import QuizService
from services.question_service import QuestionService


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test with foreign keys enforced (needed for cascades)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quiz.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def quiz_id(db):
    quiz = await QuizService(db).create_quiz(admin_id=1, quiz_name="General Knowledge", total_mark=10)
    return quiz.quiz_id


@pytest.fixture
def sample_questions():
    """Sample quiz questions for testing"""
    return [
        {
            "question_text": "What is 2+2?",
            "points": 2,
            "options": [
                {"option_text": "3"},
                {"option_text": "4", "is_correct": True},
                {"option_text": "5"},
            ],
        },
        {
            "question_text": "What is the capital of Uzbekistan?",
            "options": [
                {"option_text": "Tashkent", "is_correct": True},
                {"option_text": "Samarkand"},
            ],
        },
    ]


@pytest.fixture
async def scored_quiz(db, quiz_id):
    """
    Q1 worth 2 points (A correct, B wrong), Q2 worth 3 points (C correct, D wrong).
    Returns plain ids so tests never touch expired ORM objects after a rollback.
    """
    created = await QuestionService(db).create_questions_with_options(quiz_id, [
        {
            "question_text": "Q1",
            "points": 2,
            "options": [{"option_text": "A", "is_correct": True}, {"option_text": "B"}],
        },
        {
            "question_text": "Q2",
            "points": 3,
            "options": [{"option_text": "C", "is_correct": True}, {"option_text": "D"}],
        },
    ])
    q1, q2 = created
    return {
        "quiz_id": quiz_id,
        "q1": q1["question_id"],
        "q2": q2["question_id"],
        "A": q1["options"][0]["option_id"],
        "B": q1["options"][1]["option_id"],
        "C": q2["options"][0]["option_id"],
        "D": q2["options"][1]["option_id"],
    }

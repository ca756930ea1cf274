import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select, func

from core.exceptions import NotFoundError, ValidationError
from models.quiz import Quiz
from models.question import Question, Option
from services.quiz_service import QuizService
from services.question_service import QuestionService


async def test_create_quiz_defaults(db):
    quiz = await QuizService(db).create_quiz(admin_id=7, quiz_name="History", total_mark=20, description="Dates")

    assert quiz.quiz_id is not None
    assert quiz.admin_id == 7
    assert quiz.is_active is True
    assert quiz.created_at is not None
    assert len(quiz.quiz_token) == 5


@pytest.mark.parametrize("kwargs", [
    {"admin_id": None, "quiz_name": "Q", "total_mark": 1},
    {"admin_id": 1, "quiz_name": "", "total_mark": 1},
    {"admin_id": 1, "quiz_name": "Q", "total_mark": None},
])
async def test_create_quiz_requires_fields(db, kwargs):
    with pytest.raises(ValidationError):
        await QuizService(db).create_quiz(**kwargs)


async def test_create_quiz_retries_when_token_claimed_concurrently(db):
    service = QuizService(db)
    first = await service.create_quiz(admin_id=1, quiz_name="First", total_mark=10)
    taken = first.quiz_token

    # Simulate a racing writer: the pre-check hands out a token that is already stored
    service.tokens.generate_unique_token = AsyncMock(side_effect=[taken, "ZZ999"])
    second = await service.create_quiz(admin_id=1, quiz_name="Second", total_mark=10)

    assert second.quiz_token == "ZZ999"
    assert service.tokens.generate_unique_token.await_count == 2
    count = (await db.execute(select(func.count(Quiz.quiz_id)))).scalar()
    assert count == 2


async def test_get_quiz_by_token_only_active(db):
    service = QuizService(db)
    active = await service.create_quiz(admin_id=1, quiz_name="Open", total_mark=10)
    hidden = await service.create_quiz(admin_id=1, quiz_name="Closed", total_mark=10, is_active=False)
    active_token, hidden_token = active.quiz_token, hidden.quiz_token

    found = await service.get_quiz_by_token(active_token)
    assert found.quiz_name == "Open"

    with pytest.raises(NotFoundError):
        await service.get_quiz_by_token(hidden_token)
    with pytest.raises(NotFoundError):
        await service.get_quiz_by_token(active_token.lower())


async def test_update_quiz_keeps_token(db, quiz_id):
    service = QuizService(db)
    token = (await service.get_quiz(quiz_id)).quiz_token

    quiz = await service.update_quiz(quiz_id, quiz_name="Renamed", is_active=False, quiz_token="HACKD")

    assert quiz.quiz_name == "Renamed"
    assert quiz.is_active is False
    assert quiz.quiz_token == token
    with pytest.raises(NotFoundError):
        await service.get_quiz_by_token(token)


async def test_update_missing_quiz(db):
    with pytest.raises(NotFoundError):
        await QuizService(db).update_quiz(404, quiz_name="Nope")


async def test_delete_quiz_cascades_to_questions_and_options(db, quiz_id, sample_questions):
    await QuestionService(db).create_questions_with_options(quiz_id, sample_questions)

    await QuizService(db).delete_quiz(quiz_id)

    assert (await db.execute(select(func.count(Question.question_id)))).scalar() == 0
    assert (await db.execute(select(func.count(Option.option_id)))).scalar() == 0
    with pytest.raises(NotFoundError):
        await QuizService(db).delete_quiz(quiz_id)


async def test_get_quizzes_newest_first(db):
    service = QuizService(db)
    for name in ("one", "two", "three"):
        await service.create_quiz(admin_id=1, quiz_name=name, total_mark=1)

    names = [q.quiz_name for q in await service.get_quizzes()]
    assert names == ["three", "two", "one"]

import pytest
from sqlalchemy import select, func

from core.exceptions import NotFoundError, StoreFault, ValidationError
from models.question import Question, Option
from services.question_service import QuestionService, group_question_rows


async def _counts(db):
    questions = (await db.execute(select(func.count(Question.question_id)))).scalar()
    options = (await db.execute(select(func.count(Option.option_id)))).scalar()
    return questions, options


class TestCreateQuestions:
    async def test_creates_tree_in_input_order(self, db, quiz_id, sample_questions):
        created = await QuestionService(db).create_questions_with_options(quiz_id, sample_questions)

        assert [q["question_text"] for q in created] == ["What is 2+2?", "What is the capital of Uzbekistan?"]
        assert created[0]["points"] == 2
        assert created[1]["points"] == 1  # default
        assert [o["option_text"] for o in created[0]["options"]] == ["3", "4", "5"]
        assert [o["is_correct"] for o in created[0]["options"]] == [False, True, False]
        assert created[0]["question_id"] < created[1]["question_id"]
        assert await _counts(db) == (2, 5)

    @pytest.mark.parametrize("bad_item", [
        {"options": [{"option_text": "x"}]},
        {"question_text": "No options"},
        {"question_text": "Empty options", "options": []},
        {"question_text": "Blank option", "options": [{"option_text": ""}]},
        {"question_text": "Zero points", "points": 0, "options": [{"option_text": "x"}]},
    ])
    async def test_invalid_item_aborts_whole_batch(self, db, quiz_id, sample_questions, bad_item):
        with pytest.raises(ValidationError):
            await QuestionService(db).create_questions_with_options(quiz_id, sample_questions + [bad_item])

        assert await _counts(db) == (0, 0)

    async def test_requires_quiz_and_questions(self, db, quiz_id):
        service = QuestionService(db)
        with pytest.raises(ValidationError):
            await service.create_questions_with_options(quiz_id, [])
        with pytest.raises(ValidationError):
            await service.create_questions_with_options(None, [{"question_text": "x", "options": [{"option_text": "y"}]}])

    async def test_unknown_quiz(self, db, sample_questions):
        with pytest.raises(NotFoundError):
            await QuestionService(db).create_questions_with_options(999, sample_questions)
        assert await _counts(db) == (0, 0)

    async def test_failure_mid_batch_rolls_back_written_rows(self, db, quiz_id, sample_questions, monkeypatch):
        service = QuestionService(db)
        original = service._insert_options
        calls = []

        async def failing_insert(question_id, options):
            calls.append(question_id)
            if len(calls) == 2:
                raise StoreFault("connection lost")
            return await original(question_id, options)

        monkeypatch.setattr(service, "_insert_options", failing_insert)

        with pytest.raises(StoreFault):
            await service.create_questions_with_options(quiz_id, sample_questions)

        # The first question and its options had been flushed; none of it survives
        assert await _counts(db) == (0, 0)


class TestReadQuestions:
    async def test_single_question(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, sample_questions)

        tree = await service.get_questions_with_options(question_id=created[1]["question_id"])

        assert tree["question_text"] == "What is the capital of Uzbekistan?"
        assert [o["option_text"] for o in tree["options"]] == ["Tashkent", "Samarkand"]

    async def test_single_question_not_found(self, db):
        with pytest.raises(NotFoundError):
            await QuestionService(db).get_questions_with_options(question_id=12345)

    async def test_by_quiz_in_insertion_order(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        await service.create_questions_with_options(quiz_id, sample_questions)

        tree = await service.get_questions_with_options(quiz_id=quiz_id)

        assert [q["question_text"] for q in tree] == ["What is 2+2?", "What is the capital of Uzbekistan?"]
        assert [len(q["options"]) for q in tree] == [3, 2]

    async def test_all_questions_newest_first(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        await service.create_questions_with_options(quiz_id, sample_questions)

        tree = await service.get_questions_with_options()

        assert [q["question_text"] for q in tree] == ["What is the capital of Uzbekistan?", "What is 2+2?"]

    async def test_question_without_options_is_listed(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, sample_questions)
        await service.update_question_with_options(created[0]["question_id"], "Bare", options=[])

        tree = await service.get_questions_with_options(question_id=created[0]["question_id"])
        assert tree["options"] == []


def test_group_question_rows_first_seen_order():
    q1 = Question(question_id=1, quiz_id=1, question_text="one", points=1)
    q2 = Question(question_id=2, quiz_id=1, question_text="two", points=1)
    rows = [
        (q2, Option(option_id=5, question_id=2, option_text="b", is_correct=False)),
        (q1, Option(option_id=3, question_id=1, option_text="a", is_correct=True)),
        (q2, Option(option_id=6, question_id=2, option_text="c", is_correct=True)),
        (q1, None),
    ]

    tree = group_question_rows(rows)

    assert [q["question_id"] for q in tree] == [2, 1]
    assert [o["option_id"] for o in tree[0]["options"]] == [5, 6]
    assert [o["option_id"] for o in tree[1]["options"]] == [3]


class TestUpdateQuestion:
    async def test_replaces_option_set(self, db, quiz_id):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, [
            {"question_text": "Pick", "options": [{"option_text": "A"}, {"option_text": "B", "is_correct": True}]},
        ])
        question_id = created[0]["question_id"]

        updated = await service.update_question_with_options(
            question_id, "Pick again", points=4, options=[{"option_text": "C", "is_correct": True}]
        )

        assert updated["question_text"] == "Pick again"
        assert updated["points"] == 4
        assert [o["option_text"] for o in updated["options"]] == ["C"]
        rows = (await db.execute(select(Option.option_text).filter(Option.question_id == question_id))).scalars().all()
        assert rows == ["C"]

    async def test_points_none_keeps_current(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, sample_questions)

        updated = await service.update_question_with_options(created[0]["question_id"], "Still 2 points")

        assert updated["points"] == 2
        assert updated["options"] == []

    async def test_missing_question_leaves_options_alone(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        await service.create_questions_with_options(quiz_id, sample_questions)

        with pytest.raises(NotFoundError):
            await service.update_question_with_options(999, "Ghost", options=[{"option_text": "x"}])

        assert await _counts(db) == (2, 5)

    async def test_blank_option_rejected(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, sample_questions)
        question_id = created[0]["question_id"]

        with pytest.raises(ValidationError):
            await service.update_question_with_options(question_id, "Edited", options=[{"option_text": ""}])

        tree = await service.get_questions_with_options(question_id=question_id)
        assert tree["question_text"] == "What is 2+2?"
        assert len(tree["options"]) == 3


class TestDeleteQuestion:
    async def test_cascades_to_options(self, db, quiz_id, sample_questions):
        service = QuestionService(db)
        created = await service.create_questions_with_options(quiz_id, sample_questions)
        question_id = created[0]["question_id"]

        await service.delete_question(question_id)

        remaining = (await db.execute(select(func.count(Option.option_id)).filter(Option.question_id == question_id))).scalar()
        assert remaining == 0
        assert await _counts(db) == (1, 2)

    async def test_not_found(self, db):
        with pytest.raises(NotFoundError):
            await QuestionService(db).delete_question(42)

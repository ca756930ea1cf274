from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from models.quiz import Quiz
from models.question import Question, Option
from db.session import transaction
from core.config import settings
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger


def _resolve_points(points: Any) -> int:
    if points is None:
        return settings.DEFAULT_POINTS
    if isinstance(points, bool) or not isinstance(points, int) or points < 1:
        raise ValidationError("Question points must be a positive integer")
    return points


def _validate_options(options: Any, allow_empty: bool) -> None:
    if options is None and allow_empty:
        return
    if not isinstance(options, (list, tuple)) or (not options and not allow_empty):
        raise ValidationError("Each question must have question_text and options array")
    for option in options:
        if not option.get("option_text"):
            raise ValidationError("Each option must have option_text")


def _validate_questions(questions: Sequence[Dict[str, Any]]) -> None:
    """Reject the whole batch up front if any item is incomplete."""
    for item in questions:
        if not item.get("question_text"):
            raise ValidationError("Each question must have question_text and options array")
        _validate_options(item.get("options"), allow_empty=False)
        _resolve_points(item.get("points"))


def option_to_dict(option: Option) -> Dict[str, Any]:
    return {
        "option_id": option.option_id,
        "question_id": option.question_id,
        "option_text": option.option_text,
        "is_correct": option.is_correct,
    }


def question_to_dict(question: Question, options: Sequence[Option] = ()) -> Dict[str, Any]:
    return {
        "question_id": question.question_id,
        "quiz_id": question.quiz_id,
        "question_text": question.question_text,
        "points": question.points,
        "created_at": question.created_at,
        "options": [option_to_dict(o) for o in options],
    }


def group_question_rows(rows) -> List[Dict[str, Any]]:
    """
    Fold flat (question, option) join rows into question trees.

    Questions keep the order in which they first appear; option is None for
    questions without options (outer join).
    """
    grouped: Dict[int, Dict[str, Any]] = {}
    for question, option in rows:
        entry = grouped.get(question.question_id)
        if entry is None:
            entry = grouped[question.question_id] = question_to_dict(question)
        if option is not None:
            entry["options"].append(option_to_dict(option))
    return list(grouped.values())


class QuestionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _ensure_quiz(self, quiz_id: int) -> None:
        result = await self.db.execute(select(Quiz.quiz_id).filter(Quiz.quiz_id == quiz_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Quiz not found")

    async def _get_question(self, question_id: int) -> Question:
        result = await self.db.execute(select(Question).filter(Question.question_id == question_id))
        question = result.scalar_one_or_none()
        if not question:
            raise NotFoundError("Question not found")
        return question

    async def _insert_options(self, question_id: int, options: Sequence[Dict[str, Any]]) -> List[Option]:
        created = [
            Option(
                question_id=question_id,
                option_text=data["option_text"],
                is_correct=bool(data.get("is_correct", False)),
            )
            for data in options
        ]
        self.db.add_all(created)
        await self.db.flush()
        return created

    async def create_questions_with_options(self, quiz_id: int, questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Create several questions, each with its options, as one unit.

        Either every question and option is stored or none is. Returns the
        created questions (with nested options) in input order.
        """
        if not quiz_id or not questions:
            raise ValidationError("Quiz ID and questions array are required")
        _validate_questions(questions)

        created = []
        async with transaction(self.db):
            await self._ensure_quiz(quiz_id)
            for item in questions:
                question = Question(
                    quiz_id=quiz_id,
                    question_text=item["question_text"],
                    points=_resolve_points(item.get("points")),
                )
                self.db.add(question)
                await self.db.flush()
                options = await self._insert_options(question.question_id, item["options"])
                created.append(question_to_dict(question, options))

        logger.info(
            "Questions created",
            quiz_id=quiz_id,
            questions=len(created),
            options=sum(len(q["options"]) for q in created),
        )
        return created

    async def get_questions_with_options(
        self, question_id: Optional[int] = None, quiz_id: Optional[int] = None
    ):
        """
        Single question tree when `question_id` is given, otherwise a list.

        The list is filtered to one quiz (insertion order) when `quiz_id` is
        given, else every question newest first. Options follow creation order.
        """
        stmt = select(Question, Option).outerjoin(Option, Option.question_id == Question.question_id)

        if question_id is not None:
            stmt = stmt.filter(Question.question_id == question_id).order_by(Option.option_id)
        elif quiz_id is not None:
            stmt = stmt.filter(Question.quiz_id == quiz_id).order_by(Question.question_id, Option.option_id)
        else:
            stmt = stmt.order_by(Question.created_at.desc(), Question.question_id.desc(), Option.option_id)

        rows = (await self.db.execute(stmt)).all()
        tree = group_question_rows(rows)

        if question_id is not None:
            if not tree:
                raise NotFoundError("Question not found")
            return tree[0]
        return tree

    async def update_question_with_options(
        self,
        question_id: int,
        question_text: str,
        points: Optional[int] = None,
        options: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Update a question and replace its whole option set.

        An empty or missing `options` list leaves the question with no options.
        `points=None` keeps the current value.
        """
        if not question_text:
            raise ValidationError("Question text is required")
        _validate_options(options, allow_empty=True)

        async with transaction(self.db):
            question = await self._get_question(question_id)
            question.question_text = question_text
            if points is not None:
                question.points = _resolve_points(points)

            await self.db.execute(delete(Option).where(Option.question_id == question_id))
            created = await self._insert_options(question_id, options or [])

        logger.info("Question updated", question_id=question_id, options=len(created))
        return question_to_dict(question, created)

    async def delete_question(self, question_id: int) -> None:
        # Options are removed by ON DELETE CASCADE
        async with transaction(self.db):
            result = await self.db.execute(delete(Question).where(Question.question_id == question_id))
            if result.rowcount == 0:
                raise NotFoundError("Question not found")
        logger.info("Question deleted", question_id=question_id)

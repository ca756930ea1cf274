from datetime import datetime
from typing import Any, Dict, List, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from models.answer import UserAnswer
from models.question import Question, Option
from db.session import transaction
from db.upsert import insert_for
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger


def answer_to_dict(answer: UserAnswer) -> Dict[str, Any]:
    return {
        "user_id": answer.user_id,
        "quiz_id": answer.quiz_id,
        "question_id": answer.question_id,
        "option_id": answer.option_id,
        "answered_at": answer.answered_at,
    }


class AnswerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _check_choices(self, quiz_id: int, pairs: Sequence[tuple]) -> None:
        """Every option must belong to its question, and every question to the quiz."""
        option_ids = {option_id for _, option_id in pairs}
        result = await self.db.execute(
            select(Option.option_id, Option.question_id, Question.quiz_id)
            .join(Question, Question.question_id == Option.question_id)
            .filter(Option.option_id.in_(option_ids))
        )
        owners = {row.option_id: (row.question_id, row.quiz_id) for row in result}

        for question_id, option_id in pairs:
            if owners.get(option_id) != (question_id, quiz_id):
                raise NotFoundError(
                    f"Option {option_id} not found for question {question_id} of quiz {quiz_id}"
                )

    async def _fetch(self, user_id: int, quiz_id: int, question_ids: Sequence[int]) -> Dict[int, UserAnswer]:
        result = await self.db.execute(
            select(UserAnswer)
            .filter(
                UserAnswer.user_id == user_id,
                UserAnswer.quiz_id == quiz_id,
                UserAnswer.question_id.in_(set(question_ids)),
            )
            .execution_options(populate_existing=True)
        )
        return {a.question_id: a for a in result.scalars().all()}

    async def submit_answers(self, user_id: int, quiz_id: int, answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Record a batch of answers, one per question.

        A question answered before gets its option overwritten in place, so
        resubmitting is always safe. The batch is stored whole or not at all.
        """
        if not user_id or not quiz_id or not answers:
            raise ValidationError("User ID, quiz ID, and answers array are required")

        pairs = []
        for answer in answers:
            question_id, option_id = answer.get("question_id"), answer.get("option_id")
            if not question_id or not option_id:
                raise ValidationError("Each answer must have question_id and option_id")
            pairs.append((question_id, option_id))

        async with transaction(self.db):
            await self._check_choices(quiz_id, pairs)
            for question_id, option_id in pairs:
                stmt = insert_for(self.db, UserAnswer).values(
                    user_id=user_id,
                    quiz_id=quiz_id,
                    question_id=question_id,
                    option_id=option_id,
                    answered_at=datetime.utcnow(),
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "quiz_id", "question_id"],
                    set_={"option_id": stmt.excluded.option_id, "answered_at": stmt.excluded.answered_at},
                )
                await self.db.execute(stmt)
            stored = await self._fetch(user_id, quiz_id, [q for q, _ in pairs])

        logger.info("Answers submitted", user_id=user_id, quiz_id=quiz_id, count=len(pairs))
        return [answer_to_dict(stored[question_id]) for question_id, _ in pairs]

    async def get_answers(self) -> List[UserAnswer]:
        result = await self.db.execute(select(UserAnswer).order_by(UserAnswer.answered_at.desc()))
        return list(result.scalars().all())

    async def get_answers_by_quiz(self, user_id: int, quiz_id: int) -> List[UserAnswer]:
        result = await self.db.execute(
            select(UserAnswer)
            .filter(UserAnswer.user_id == user_id, UserAnswer.quiz_id == quiz_id)
            .order_by(UserAnswer.question_id)
        )
        return list(result.scalars().all())

    async def get_answer(self, user_id: int, quiz_id: int, question_id: int) -> UserAnswer:
        answer = (await self._fetch(user_id, quiz_id, [question_id])).get(question_id)
        if not answer:
            raise NotFoundError("User answer not found")
        return answer

    async def update_answer(self, user_id: int, quiz_id: int, question_id: int, option_id: int) -> UserAnswer:
        """Change the chosen option of an answer that already exists."""
        if not option_id:
            raise ValidationError("Option ID is required")

        async with transaction(self.db):
            result = await self.db.execute(
                update(UserAnswer)
                .where(
                    UserAnswer.user_id == user_id,
                    UserAnswer.quiz_id == quiz_id,
                    UserAnswer.question_id == question_id,
                )
                .values(option_id=option_id, answered_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("User answer not found")
            await self._check_choices(quiz_id, [(question_id, option_id)])

        logger.info("Answer updated", user_id=user_id, quiz_id=quiz_id, question_id=question_id)
        return await self.get_answer(user_id, quiz_id, question_id)

    async def delete_answers_for_quiz(self, user_id: int, quiz_id: int) -> int:
        """Drop a participant's whole attempt so the quiz can be restarted."""
        async with transaction(self.db):
            result = await self.db.execute(
                delete(UserAnswer)
                .where(UserAnswer.user_id == user_id, UserAnswer.quiz_id == quiz_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("No user answers found for this quiz")

        logger.info("Answers deleted", user_id=user_id, quiz_id=quiz_id, count=result.rowcount)
        return result.rowcount

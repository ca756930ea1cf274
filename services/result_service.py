from datetime import datetime
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, case, and_
from models.answer import UserAnswer
from models.question import Question, Option
from models.result import UserResult
from db.session import transaction
from db.upsert import insert_for
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.logger import logger

class ResultService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def calculate_score(self, user_id: int, quiz_id: int) -> int:
        """
        Sum of question points over the participant's correct answers.

        An option only counts for the question it belongs to. No answers
        means a score of 0.
        """
        stmt = (
            select(func.coalesce(func.sum(case((Option.is_correct == True, Question.points), else_=0)), 0))
            .select_from(UserAnswer)
            .join(Option, and_(Option.option_id == UserAnswer.option_id, Option.question_id == UserAnswer.question_id))
            .join(Question, Question.question_id == UserAnswer.question_id)
            .filter(UserAnswer.user_id == user_id, UserAnswer.quiz_id == quiz_id)
        )
        return int((await self.db.execute(stmt)).scalar() or 0)

    async def _fetch(self, user_id: int, quiz_id: int):
        result = await self.db.execute(
            select(UserResult)
            .filter(UserResult.user_id == user_id, UserResult.quiz_id == quiz_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def compute_and_store_result(self, user_id: int, quiz_id: int) -> UserResult:
        """
        Score the current attempt and store it as the participant's result.

        Safe to call repeatedly: the single (user, quiz) result row is
        overwritten with the latest score and completion time.
        """
        if not user_id or not quiz_id:
            raise ValidationError("User ID and quiz ID are required")

        async with transaction(self.db):
            score = await self.calculate_score(user_id, quiz_id)
            stmt = insert_for(self.db, UserResult).values(
                user_id=user_id,
                quiz_id=quiz_id,
                score=score,
                completed_at=datetime.utcnow(),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "quiz_id"],
                set_={"score": stmt.excluded.score, "completed_at": stmt.excluded.completed_at},
            )
            await self.db.execute(stmt)
            result = await self._fetch(user_id, quiz_id)

        logger.info("Result calculated", user_id=user_id, quiz_id=quiz_id, score=score)
        return result

    async def create_result_manually(self, user_id: int, quiz_id: int, score: int) -> UserResult:
        """Administrative insert. Not an upsert: an existing (user, quiz) result is a conflict."""
        if not user_id or not quiz_id or score is None:
            raise ValidationError("User ID, quiz ID, and score are required")

        result = UserResult(user_id=user_id, quiz_id=quiz_id, score=score, completed_at=datetime.utcnow())
        try:
            async with transaction(self.db):
                self.db.add(result)
        except ConflictError as e:
            raise ConflictError("Result already exists for this user and quiz") from e

        await self.db.refresh(result)
        logger.info("Result created manually", result_id=result.result_id, user_id=user_id, quiz_id=quiz_id, score=score)
        return result

    async def get_results(self) -> List[UserResult]:
        result = await self.db.execute(
            select(UserResult).order_by(UserResult.completed_at.desc(), UserResult.result_id.desc())
        )
        return list(result.scalars().all())

    async def get_result(self, result_id: int) -> UserResult:
        result = await self.db.execute(select(UserResult).filter(UserResult.result_id == result_id))
        user_result = result.scalar_one_or_none()
        if not user_result:
            raise NotFoundError("Result not found")
        return user_result

    async def get_results_by_user(self, user_id: int) -> List[UserResult]:
        result = await self.db.execute(
            select(UserResult)
            .filter(UserResult.user_id == user_id)
            .order_by(UserResult.completed_at.desc(), UserResult.result_id.desc())
        )
        return list(result.scalars().all())

    async def get_results_by_quiz(self, quiz_id: int) -> List[UserResult]:
        """Leaderboard: highest score first, earlier completion wins ties."""
        result = await self.db.execute(
            select(UserResult)
            .filter(UserResult.quiz_id == quiz_id)
            .order_by(UserResult.score.desc(), UserResult.completed_at.asc(), UserResult.result_id.asc())
        )
        return list(result.scalars().all())

    async def get_user_quiz_result(self, user_id: int, quiz_id: int) -> UserResult:
        user_result = await self._fetch(user_id, quiz_id)
        if not user_result:
            raise NotFoundError("Result not found for this user and quiz")
        return user_result

    async def update_result(self, result_id: int, score: int) -> UserResult:
        if score is None:
            raise ValidationError("Score is required")

        async with transaction(self.db):
            user_result = await self.get_result(result_id)
            user_result.score = score
            user_result.completed_at = datetime.utcnow()

        logger.info("Result updated", result_id=result_id, score=score)
        return user_result

    async def delete_result(self, result_id: int) -> None:
        async with transaction(self.db):
            result = await self.db.execute(
                delete(UserResult)
                .where(UserResult.result_id == result_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Result not found")
        logger.info("Result deleted", result_id=result_id)

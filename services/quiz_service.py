from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from models.quiz import Quiz
from db.session import transaction
from services.token_service import TokenService
from core.config import settings
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.logger import logger

class QuizService:
    UPDATABLE_FIELDS = ("quiz_name", "description", "total_mark", "is_active")

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tokens = TokenService(db)

    async def create_quiz(
        self,
        admin_id: int,
        quiz_name: str,
        total_mark: int,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Quiz:
        if not admin_id or not quiz_name or not total_mark:
            raise ValidationError("Admin ID, quiz name, and total mark are required")

        for attempt in range(1, settings.TOKEN_MAX_ATTEMPTS + 1):
            token = await self.tokens.generate_unique_token()
            quiz = Quiz(
                admin_id=admin_id,
                quiz_name=quiz_name,
                description=description,
                total_mark=total_mark,
                quiz_token=token,
                is_active=is_active,
            )
            try:
                async with transaction(self.db):
                    self.db.add(quiz)
            except ConflictError:
                # Another writer took the token between our check and insert
                logger.warning("Quiz token claimed concurrently, retrying", token=token, attempt=attempt)
                continue

            await self.db.refresh(quiz)
            logger.info("Quiz created", quiz_id=quiz.quiz_id, admin_id=admin_id, token=token)
            return quiz

        raise ConflictError("Could not assign a unique quiz token")

    async def get_quizzes(self) -> List[Quiz]:
        result = await self.db.execute(
            select(Quiz).order_by(Quiz.created_at.desc(), Quiz.quiz_id.desc())
        )
        return list(result.scalars().all())

    async def get_quiz(self, quiz_id: int) -> Quiz:
        result = await self.db.execute(select(Quiz).filter(Quiz.quiz_id == quiz_id))
        quiz = result.scalar_one_or_none()
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz

    async def get_quiz_by_token(self, token: str) -> Quiz:
        """Look up a quiz by its access code. Inactive quizzes are not discoverable."""
        result = await self.db.execute(
            select(Quiz).filter(Quiz.quiz_token == token, Quiz.is_active == True)
        )
        quiz = result.scalar_one_or_none()
        if not quiz:
            raise NotFoundError("Quiz not found or inactive")
        return quiz

    async def update_quiz(self, quiz_id: int, **fields) -> Quiz:
        """Update name, description, total mark or active flag. The token never changes."""
        async with transaction(self.db):
            quiz = await self.get_quiz(quiz_id)
            for key, value in fields.items():
                if key in self.UPDATABLE_FIELDS and value is not None:
                    setattr(quiz, key, value)

        await self.db.refresh(quiz)
        logger.info("Quiz updated", quiz_id=quiz_id, fields=[k for k in fields if k in self.UPDATABLE_FIELDS])
        return quiz

    async def delete_quiz(self, quiz_id: int) -> None:
        # Questions and options go with it through ON DELETE CASCADE
        async with transaction(self.db):
            result = await self.db.execute(delete(Quiz).where(Quiz.quiz_id == quiz_id))
            if result.rowcount == 0:
                raise NotFoundError("Quiz not found")
        logger.info("Quiz deleted", quiz_id=quiz_id)

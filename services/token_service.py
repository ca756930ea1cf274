import secrets
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.quiz import Quiz
from core.config import settings
from core.exceptions import ConflictError
from core.logger import logger


def generate_token(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Random access code of `length` symbols drawn from `alphabet`."""
    if length is None:
        length = settings.TOKEN_LENGTH
    if alphabet is None:
        alphabet = settings.TOKEN_ALPHABET
    if length < 1 or not alphabet:
        raise ValueError("Token length must be positive and alphabet non-empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


class TokenService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_token_taken(self, token: str) -> bool:
        result = await self.db.execute(select(Quiz.quiz_id).filter(Quiz.quiz_token == token))
        return result.scalar_one_or_none() is not None

    async def generate_unique_token(self) -> str:
        """
        Generate a token not used by any quiz yet.

        The check is a plain read, so a concurrent writer can still claim the
        same token before our insert lands. QuizService.create_quiz retries on
        the unique constraint for that case.
        """
        for attempt in range(1, settings.TOKEN_MAX_ATTEMPTS + 1):
            token = generate_token()
            if not await self.is_token_taken(token):
                return token
            logger.debug("Token collision, regenerating", token=token, attempt=attempt)

        logger.error("Token space exhausted", attempts=settings.TOKEN_MAX_ATTEMPTS)
        raise ConflictError("Could not generate a unique quiz token")

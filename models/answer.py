from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, DateTime, PrimaryKeyConstraint, Index, func
from models.base import Base

class UserAnswer(Base):
    """
    A participant's chosen option for one question of one quiz.

    Quiz, question and option are referenced by id only: deleting them
    never cascades into recorded answers.
    """
    __tablename__ = "user_answers"
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "quiz_id", "question_id", name="pk_user_answers"),
        Index("idx_user_answers_quiz", "quiz_id"),
    )

    user_id = Column(BigInteger, nullable=False)
    quiz_id = Column(Integer, nullable=False)
    question_id = Column(Integer, nullable=False)
    option_id = Column(Integer, nullable=False)
    answered_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False)

from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, DateTime, UniqueConstraint, func
from models.base import Base

class UserResult(Base):
    __tablename__ = "user_results"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="uq_user_results_user_quiz"),
    )

    result_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, index=True, nullable=False)
    quiz_id = Column(Integer, index=True, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False)

from sqlalchemy import Column, Integer, String, Text, Boolean, BigInteger
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Quiz(Base, TimestampMixin):
    __tablename__ = "quizzes"

    quiz_id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(BigInteger, index=True, nullable=False)
    quiz_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    total_mark = Column(Integer, nullable=False)
    # Public access code, case sensitive
    quiz_token = Column(String(16), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Question.question_id",
    )

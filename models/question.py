from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, false
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Question(Base, TimestampMixin):
    __tablename__ = "questions"

    question_id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.quiz_id", ondelete="CASCADE"), index=True, nullable=False)
    question_text = Column(Text, nullable=False)
    points = Column(Integer, default=1, server_default="1", nullable=False)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Option.option_id",
    )

class Option(Base):
    __tablename__ = "options"

    option_id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.question_id", ondelete="CASCADE"), index=True, nullable=False)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, server_default=false(), nullable=False)

    question = relationship("Question", back_populates="options")

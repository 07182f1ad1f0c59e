from enum import Enum
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin


class QuestionType(str, Enum):
    MCQ = "mcq"
    OPEN = "open"


MCQ_LABELS = ("A", "B", "C", "D")


class Question(Base, TimestampMixin):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(10), nullable=False)
    text = Column(Text, nullable=False)
    # Option letter for mcq, reference answer for open questions
    correct = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)
    language = Column(String(100), nullable=False)
    topic = Column(String(255), nullable=False)
    difficulty = Column(Integer, nullable=False)
    solving_time = Column(Integer, nullable=True)

    quiz_id = Column(Integer, ForeignKey("quizzes.id"), index=True, nullable=True)
    game_session_id = Column(Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), index=True, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")
    game_session = relationship("GameSession", back_populates="questions")
    answers = relationship(
        "QuestionAnswer", back_populates="question", order_by="QuestionAnswer.id", cascade="all, delete-orphan"
    )

    @property
    def question_type(self) -> QuestionType:
        return QuestionType(self.type)


class QuestionAnswer(Base, TimestampMixin):
    __tablename__ = "question_answers"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=True)
    user_answer = Column(Text, nullable=True)
    correct = Column(Boolean, nullable=False)
    score = Column(Integer, nullable=False)

    question = relationship("Question", back_populates="answers")

from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Quiz(Base, TimestampMixin):
    """A user-owned batch of generated questions, kept for answer-history review."""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    language = Column(String(100), nullable=False)
    type = Column(String(10), nullable=False)
    time_limit = Column(Integer, nullable=True)
    topic = Column(String(255), nullable=True)

    user = relationship("User", backref="quizzes")
    questions = relationship(
        "Question", back_populates="quiz", order_by="Question.id", cascade="all, delete-orphan"
    )

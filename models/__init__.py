from models.base import Base, TimestampMixin
from models.user import User
from models.quiz import Quiz
from models.question import Question, QuestionAnswer, QuestionType, MCQ_LABELS
from models.session import GameSession, Player, SessionStatus, PlayerStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "Quiz",
    "Question",
    "QuestionAnswer",
    "QuestionType",
    "MCQ_LABELS",
    "GameSession",
    "Player",
    "SessionStatus",
    "PlayerStatus",
]
